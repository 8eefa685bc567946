"""SILK Voice Converter - Codec collaborator.

The coordinator only sees the narrow Codec interface:

    encode(input_path, output_path) -> Path

which blocks until the SILK file is written and returns its final location
(a codec may normalize the path). The production SilkCodec decodes the
source audio to raw PCM with ffmpeg, then encodes SILK with pilk.

Dependencies:
- Requires ffmpeg installed and in PATH
- pilk (SILK v3 encoder bindings)

Errors are raised as CodecError for the invocation that caused them and are
also logged here, on the process-wide codec diagnostic logger.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Protocol

import pilk

from app.config import (
    FFMPEG_TIMEOUT_SECONDS,
    SILK_CHANNELS,
    SILK_PCM_RATE,
    SILK_TENCENT_HEADER,
)
from app.utils.atomic_io import temp_path_for

logger = logging.getLogger(__name__)

PCM_TEMP_SUFFIX = ".pcm.tmp"


class CodecError(Exception):
    """Codec failed to produce output for one invocation."""


class Codec(Protocol):
    """Blocking SILK encoder; called from a worker thread."""

    def encode(self, input_path: Path, output_path: Path) -> Path: ...


class SilkCodec:
    """ffmpeg -> 16-bit PCM -> pilk -> SILK."""

    def __init__(
        self,
        pcm_rate: int = SILK_PCM_RATE,
        channels: int = SILK_CHANNELS,
        tencent: bool = SILK_TENCENT_HEADER,
        ffmpeg_timeout: float = FFMPEG_TIMEOUT_SECONDS,
        ffmpeg_bin: str = "ffmpeg",
    ):
        self.pcm_rate = pcm_rate
        self.channels = channels
        self.tencent = tencent
        self.ffmpeg_timeout = ffmpeg_timeout
        self.ffmpeg_bin = ffmpeg_bin

    def encode(self, input_path: Path, output_path: Path) -> Path:
        input_path = Path(input_path)
        output_path = Path(output_path)
        pcm_path = temp_path_for(output_path, PCM_TEMP_SUFFIX)

        try:
            self._decode_to_pcm(input_path, pcm_path)
            try:
                duration_ms = pilk.encode(
                    str(pcm_path),
                    str(output_path),
                    pcm_rate=self.pcm_rate,
                    tencent=self.tencent,
                )
            except Exception as e:
                logger.error("SILK encode failed for %s: %s", input_path, e)
                raise CodecError(f"SILK encode failed: {e}") from e
        finally:
            try:
                pcm_path.unlink()
            except FileNotFoundError:
                pass
            except OSError:
                logger.warning("Failed to remove PCM temp file %s", pcm_path, exc_info=True)

        if not output_path.exists() or output_path.stat().st_size == 0:
            logger.error("SILK encoder produced no output for %s", input_path)
            raise CodecError("SILK encoder produced no output")

        logger.info("Encoded %s -> %s (%s ms)", input_path.name, output_path.name, duration_ms)
        return output_path

    def _decode_to_pcm(self, input_path: Path, pcm_path: Path) -> None:
        """Decode any ffmpeg-readable input to raw s16le PCM.

        Raises:
            CodecError: If ffmpeg is missing, times out, or fails.
        """
        cmd = [
            self.ffmpeg_bin,
            "-v",
            "error",
            "-y",
            "-i",
            str(input_path),
            "-ac",
            str(self.channels),
            "-ar",
            str(self.pcm_rate),
            "-f",
            "s16le",
            str(pcm_path),
        ]

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                check=False,
                timeout=self.ffmpeg_timeout,
            )
        except subprocess.TimeoutExpired as e:
            logger.error("ffmpeg timed out after %s seconds on %s", self.ffmpeg_timeout, input_path)
            raise CodecError(f"ffmpeg timed out after {self.ffmpeg_timeout} seconds") from e
        except FileNotFoundError as e:
            logger.error("ffmpeg not found in PATH")
            raise CodecError("ffmpeg not found in PATH") from e
        except OSError as e:
            logger.error("ffmpeg execution failed: %s", e)
            raise CodecError(f"ffmpeg execution failed: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            logger.error("ffmpeg failed on %s (rc=%d): %s", input_path, result.returncode, stderr)
            raise CodecError(f"ffmpeg could not decode input: {stderr or result.returncode}")

        if not pcm_path.exists() or pcm_path.stat().st_size == 0:
            logger.error("ffmpeg produced no PCM for %s", input_path)
            raise CodecError("ffmpeg produced no audio samples")
