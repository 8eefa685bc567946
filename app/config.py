"""SILK Voice Converter - Configuration constants.

Module-level settings with SILKCONV_* environment overrides.
No external config libraries.
All paths are relative to the repository root by default.
"""

import os
from pathlib import Path

# Repository root (parent of app/)
REPO_ROOT = Path(__file__).parent.parent.resolve()


def _get_env_path(name: str, default: Path) -> Path:
    """Get a directory path from the environment or use default."""
    env_val = os.environ.get(name)
    if env_val:
        return Path(env_val).expanduser().resolve()
    return default


def _get_env_int(name: str, default: int) -> int:
    """Get a positive integer from the environment or use default.

    Malformed or non-positive values fall back to the default.

    Returns:
        The configured integer.
    """
    env_val = os.environ.get(name)
    if env_val:
        try:
            value = int(env_val)
            if value > 0:
                return value
        except ValueError:
            pass
    return default


def _get_env_float(name: str, default: float) -> float:
    """Get a positive float from the environment or use default."""
    env_val = os.environ.get(name)
    if env_val:
        try:
            value = float(env_val)
            if value > 0:
                return value
        except ValueError:
            pass
    return default


def _get_env_bool(name: str, default: bool) -> bool:
    """Get a boolean flag from the environment ("1"/"true"/"yes" are true)."""
    env_val = os.environ.get(name)
    if env_val is None or env_val == "":
        return default
    return env_val.strip().lower() in ("1", "true", "yes", "on")


# Staging area (uploads, remote downloads / decoded Base64, converted output)
DATA_DIR = _get_env_path("SILKCONV_DATA_DIR", REPO_ROOT / "data")
UPLOADS_DIR = DATA_DIR / "uploads"
DOWNLOAD_DIR = DATA_DIR / "download"
OUTPUT_DIR = DATA_DIR / "output"

# Front-end page served at / when the directory exists
STATIC_DIR = _get_env_path("SILKCONV_STATIC_DIR", REPO_ROOT / "public")

# HTTP server
HOST = os.environ.get("SILKCONV_HOST", "0.0.0.0")
PORT = _get_env_int("SILKCONV_PORT", 30000)
LOG_LEVEL = os.environ.get("SILKCONV_LOG_LEVEL", "INFO").upper()

# Conversion timeout in seconds (codec vs timer race)
CONVERSION_TIMEOUT_SECONDS = _get_env_float("SILKCONV_CONVERSION_TIMEOUT_SEC", 30.0)

# Retain converted output as a cache (False deletes it after the response).
# With retention off every request converts to its own output file, since a
# shared cached file could be deleted by another request's cleanup mid-stream.
KEEP_OUTPUT = _get_env_bool("SILKCONV_KEEP_OUTPUT", True)

# Remote fetch limits
DOWNLOAD_TIMEOUT_SECONDS = _get_env_float("SILKCONV_DOWNLOAD_TIMEOUT_SEC", 30.0)
MAX_DOWNLOAD_BYTES = _get_env_int("SILKCONV_MAX_DOWNLOAD_BYTES", 50 * 1024 * 1024)
ALLOWED_URL_SCHEMES = ("http", "https")

# Base64 payloads are capped at roughly the same decoded size as downloads
MAX_BASE64_CHARS = _get_env_int("SILKCONV_MAX_BASE64_CHARS", 70 * 1024 * 1024)

# Source extension when nothing better is known
DEFAULT_INPUT_EXT = "mp3"

# SILK encoder parameters.
# pilk accepts 8000/12000/16000/24000/32000/44100/48000 Hz PCM input.
SILK_PCM_RATE = 24000
SILK_CHANNELS = 1
SILK_TENCENT_HEADER = True

# ffmpeg subprocess timeout in seconds
# Must be < CONVERSION_TIMEOUT_SECONDS so a stuck decoder fails the request
# instead of outliving it
FFMPEG_TIMEOUT_SECONDS = 25
