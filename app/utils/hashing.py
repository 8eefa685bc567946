"""SILK Voice Converter - Hashing utilities.

All hash functions return HEX DIGEST ONLY (no prefix).
Output cache keys are built from these digests.
"""

import hashlib
from pathlib import Path

from app.config import SILK_CHANNELS, SILK_PCM_RATE, SILK_TENCENT_HEADER

# Length of the content digest prefix used in output cache keys
CACHE_KEY_DIGEST_CHARS = 32


def sha256_file(path: str | Path) -> str:
    """Compute SHA256 hash of a file.

    Args:
        path: Path to the file to hash.

    Returns:
        SHA256 hex digest (64 lowercase hex characters, no prefix).

    Raises:
        FileNotFoundError: If the file does not exist.
        IOError: If the file cannot be read.
    """
    path = Path(path)
    hasher = hashlib.sha256()

    # Read in chunks for memory efficiency with large files
    with open(path, "rb") as f:
        while chunk := f.read(65536):  # 64KB chunks
            hasher.update(chunk)

    return hasher.hexdigest()


def sha256_bytes(data: bytes) -> str:
    """Compute SHA256 hash of bytes."""
    return hashlib.sha256(data).hexdigest()


def codec_spec_id(
    pcm_rate: int = SILK_PCM_RATE,
    channels: int = SILK_CHANNELS,
    tencent: bool = SILK_TENCENT_HEADER,
) -> str:
    """Human-readable identifier of the encoder parameters.

    Any change to the parameters changes the identifier, and with it every
    cache key, so stale output is never served after a config change.
    """
    header = "tencent" if tencent else "plain"
    return f"silk_s16le_sr{pcm_rate}_ch{channels}_{header}"


def codec_spec_alias(spec_id: str | None = None) -> str:
    """Compute the short alias for a codec spec ID.

    Returns:
        First 12 hex chars of sha256(spec_id).
    """
    if spec_id is None:
        spec_id = codec_spec_id()
    return sha256_bytes(spec_id.encode("utf-8"))[:12]


def output_cache_key(input_path: str | Path, spec_id: str | None = None) -> str:
    """Content-addressed cache key for converting input_path to SILK.

    Identical input bytes under identical encoder parameters map to the
    same key; different bytes never do.

    Raises:
        FileNotFoundError: If the input does not exist.
    """
    digest = sha256_file(input_path)[:CACHE_KEY_DIGEST_CHARS]
    return f"{digest}.{codec_spec_alias(spec_id)}"
