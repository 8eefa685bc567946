"""SILK Voice Converter - Staging area path utilities.

Canonical Paths for input and output artifacts. Path helpers do NOT create
directories; ensure_staging_dirs() does that once at startup.
"""

from __future__ import annotations

import re
from pathlib import Path

from app.config import DOWNLOAD_DIR, OUTPUT_DIR, UPLOADS_DIR

SILK_EXT = "silk"

# Characters allowed in client-supplied names; anything else becomes "_"
_UNSAFE_NAME_CHARS = re.compile(r"[^\w.\-]+")
_MAX_NAME_LENGTH = 100


def staging_dirs() -> tuple[Path, Path, Path]:
    """Get the (uploads, download, output) staging directories."""
    return UPLOADS_DIR, DOWNLOAD_DIR, OUTPUT_DIR


def ensure_staging_dirs() -> None:
    """Create every staging directory if absent.

    Idempotent: repeated calls are no-ops.

    Raises:
        OSError: If a directory cannot be created.
    """
    for directory in staging_dirs():
        directory.mkdir(parents=True, exist_ok=True)


def sanitize_name(name: str | None) -> str | None:
    """Reduce a client-supplied name to a safe single path component.

    Strips directory parts and unsafe characters. Returns None when nothing
    usable is left.
    """
    if not name:
        return None
    # Only the last component of either separator style
    base = name.replace("\\", "/").rsplit("/", 1)[-1]
    base = _UNSAFE_NAME_CHARS.sub("_", base).strip("._")
    if not base:
        return None
    return base[:_MAX_NAME_LENGTH]


def _normalize_ext(ext: str) -> str:
    return ext.lstrip(".").lower()


def upload_input_path(logical_name: str, request_id: str, ext: str) -> Path:
    """Get path for an uploaded input file.

    Returns:
        Path: uploads/{logical_name}.{request_id}.{ext}
    """
    return UPLOADS_DIR / f"{logical_name}.{request_id}.{_normalize_ext(ext)}"


def download_input_path(logical_name: str, request_id: str, ext: str) -> Path:
    """Get path for a fetched or Base64-decoded input file.

    Returns:
        Path: download/{logical_name}.{request_id}.{ext}
    """
    return DOWNLOAD_DIR / f"{logical_name}.{request_id}.{_normalize_ext(ext)}"


def output_silk_path(cache_key: str) -> Path:
    """Get path for a converted SILK file.

    Args:
        cache_key: Key from app.utils.hashing.output_cache_key().

    Returns:
        Path: output/{cache_key}.silk
    """
    return OUTPUT_DIR / f"{cache_key}.{SILK_EXT}"


def request_output_path(input_path: str | Path) -> Path:
    """Get a per-request output path, bypassing the shared cache.

    Input names already carry a unique request ID, so the output does too.

    Returns:
        Path: output/{logical_name}.{request_id}.silk
    """
    return OUTPUT_DIR / f"{Path(input_path).stem}.{SILK_EXT}"
