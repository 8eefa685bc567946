"""SILK Voice Converter - Conversion coordinator.

Runs one conversion from an InputArtifact path to a SILK OutputArtifact:

1. Missing input -> InputNotFoundError (codec never invoked)
2. Output already present -> cache hit, codec not invoked
3. Otherwise the codec runs in a worker thread, writing to a unique staged
   path, raced against a timer task. Whichever finishes first wins:
   - codec: staged file is atomically published to the output path
   - timer: ConversionTimeoutError; the codec thread cannot be cancelled,
     so its late result is discarded (staged file deleted, never published)
4. cleanup_artifacts() runs after the response is sent

Output paths are content-addressed (sha256 of the input bytes plus the
encoder parameter alias), so two different inputs never share an output.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from pathlib import Path

from app.codec import Codec, CodecError
from app.config import CONVERSION_TIMEOUT_SECONDS, KEEP_OUTPUT
from app.errors import ConversionFailedError, ConversionTimeoutError, InputNotFoundError
from app.models import ConversionState, OutputArtifact
from app.utils.atomic_io import publish_file, temp_path_for, unique_temp_suffix
from app.utils.hashing import output_cache_key
from app.utils.paths import output_silk_path

logger = logging.getLogger(__name__)


async def convert(
    input_path: str | Path,
    output_path: str | Path | None = None,
    *,
    codec: Codec,
    timeout: float = CONVERSION_TIMEOUT_SECONDS,
) -> OutputArtifact:
    """Convert input_path to SILK, reusing existing output when present.

    Args:
        input_path: Local input audio file.
        output_path: Explicit output path. When omitted, the content-addressed
            path output/{cache_key}.silk is used.
        codec: Blocking encoder, run in a worker thread.
        timeout: Seconds to wait for the codec before giving up.

    Returns:
        OutputArtifact for the published (or reused) SILK file.

    Raises:
        InputNotFoundError: If input_path does not exist.
        ConversionTimeoutError: If the codec does not finish within timeout.
        ConversionFailedError: If the codec fails or its output cannot be published.
    """
    input_path = Path(input_path)
    state = ConversionState.PENDING

    if not input_path.is_file():
        logger.warning("Conversion input missing: %s", input_path)
        raise InputNotFoundError(str(input_path))

    if output_path is None:
        try:
            cache_key = await asyncio.to_thread(output_cache_key, input_path)
        except FileNotFoundError as e:
            raise InputNotFoundError(str(input_path)) from e
        output_path = output_silk_path(cache_key)
    else:
        output_path = Path(output_path)
        cache_key = output_path.stem

    if output_path.exists():
        state = ConversionState.CACHE_HIT
        logger.info("Output already converted, reusing %s (state=%s)", output_path, state)
        return OutputArtifact(path=output_path, cache_key=cache_key, cache_hit=True)

    staged_path = temp_path_for(output_path, unique_temp_suffix())
    state = ConversionState.ENCODING
    logger.debug("Encoding %s -> %s (state=%s)", input_path, staged_path, state)

    codec_task = asyncio.ensure_future(asyncio.to_thread(codec.encode, input_path, staged_path))
    timer_task = asyncio.ensure_future(asyncio.sleep(timeout))

    try:
        await asyncio.wait({codec_task, timer_task}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        # Caller went away; the codec thread keeps running
        timer_task.cancel()
        _abandon(codec_task, staged_path)
        raise

    if not codec_task.done():
        state = ConversionState.TIMED_OUT
        _abandon(codec_task, staged_path)
        logger.warning(
            "Conversion of %s timed out after %gs (state=%s)", input_path, timeout, state
        )
        raise ConversionTimeoutError(timeout)

    timer_task.cancel()

    try:
        produced = codec_task.result()
    except CodecError as e:
        state = ConversionState.FAILED
        _remove_quietly(staged_path)
        logger.warning("Conversion of %s failed (state=%s): %s", input_path, state, e)
        raise ConversionFailedError(str(e)) from e
    except Exception as e:
        state = ConversionState.FAILED
        _remove_quietly(staged_path)
        logger.exception("Unexpected codec error converting %s", input_path)
        raise ConversionFailedError(f"unexpected codec error: {e}") from e

    # The codec may normalize the path it was given
    produced_path = Path(produced) if produced else staged_path
    try:
        publish_file(produced_path, output_path)
    except OSError as e:
        state = ConversionState.FAILED
        _remove_quietly(produced_path)
        logger.error("Failed to publish %s to %s: %s", produced_path, output_path, e)
        raise ConversionFailedError(f"could not publish output: {e}") from e
    finally:
        if produced_path != staged_path:
            _remove_quietly(staged_path)

    state = ConversionState.COMPLETED
    logger.info("Converted %s -> %s (state=%s)", input_path.name, output_path, state)
    return OutputArtifact(path=output_path, cache_key=cache_key, cache_hit=False)


def _abandon(codec_task: asyncio.Future, staged_path: Path) -> None:
    """Arrange for a codec result nobody is waiting for to be discarded."""
    codec_task.add_done_callback(
        functools.partial(_discard_late_result, staged_path=staged_path)
    )


def _discard_late_result(codec_task: asyncio.Future, *, staged_path: Path) -> None:
    """Drop a codec result that finished after the request gave up.

    Late results never reach the output path, so the cache only ever holds
    output from conversions that completed in time.
    """
    if codec_task.cancelled():
        _remove_quietly(staged_path)
        return

    exc = codec_task.exception()
    if exc is not None:
        logger.warning("Late codec failure after timeout discarded: %s", exc)
    else:
        produced = codec_task.result()
        logger.warning("Late codec result after timeout discarded: %s", produced)
        if produced and Path(produced) != staged_path:
            _remove_quietly(Path(produced))
    _remove_quietly(staged_path)


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("Failed to remove %s", path, exc_info=True)


def cleanup_artifacts(
    input_path: str | Path | None,
    output_path: str | Path | None = None,
    keep_output: bool = KEEP_OUTPUT,
) -> None:
    """Delete request artifacts after the response has been sent.

    The input is always deleted. The output is deleted only when output
    retention is disabled. Failures are logged, never raised.
    """
    if input_path is not None:
        _remove_artifact(Path(input_path), "input")
    if output_path is not None and not keep_output:
        _remove_artifact(Path(output_path), "output")


def _remove_artifact(path: Path, kind: str) -> None:
    try:
        path.unlink()
        logger.debug("Removed %s artifact %s", kind, path)
    except FileNotFoundError:
        logger.debug("%s artifact already gone: %s", kind.capitalize(), path)
    except OSError:
        logger.warning("Failed to remove %s artifact %s (non-fatal)", kind, path, exc_info=True)
