"""SILK Voice Converter - Source format guessing.

Best-effort format detection from file names, URLs and data-URI MIME types.
Used only to pick the input file extension; ffmpeg sniffs the real format.
"""

from pathlib import PurePosixPath
from urllib.parse import urlsplit

from app.config import DEFAULT_INPUT_EXT

# Extensions accepted as-is for input files
KNOWN_AUDIO_EXTS = frozenset(
    {"mp3", "wav", "ogg", "oga", "opus", "m4a", "aac", "amr", "flac", "webm", "wma", "silk", "pcm"}
)

_MIME_TO_EXT = {
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/wave": "wav",
    "audio/ogg": "ogg",
    "audio/opus": "opus",
    "audio/mp4": "m4a",
    "audio/x-m4a": "m4a",
    "audio/aac": "aac",
    "audio/amr": "amr",
    "audio/flac": "flac",
    "audio/x-flac": "flac",
    "audio/webm": "webm",
}


def guess_format_from_extension(filename: str | None) -> str | None:
    """Guess audio format from filename extension.

    Args:
        filename: Filename or path string.

    Returns:
        Lowercase extension without dot if it is a known audio extension,
        None otherwise.
    """
    if not filename:
        return None
    ext = PurePosixPath(filename.replace("\\", "/")).suffix.lower().lstrip(".")
    return ext if ext in KNOWN_AUDIO_EXTS else None


def guess_format_from_url(url: str) -> str | None:
    """Guess audio format from the path component of a URL (query ignored)."""
    try:
        path = urlsplit(url).path
    except ValueError:
        return None
    return guess_format_from_extension(path)


def guess_format_from_mime(mime: str | None) -> str | None:
    """Map an audio MIME type (parameters ignored) to an extension."""
    if not mime:
        return None
    return _MIME_TO_EXT.get(mime.split(";", 1)[0].strip().lower())


def input_ext(*guesses: str | None) -> str:
    """First non-empty guess, falling back to the default source format."""
    for guess in guesses:
        if guess:
            return guess
    return DEFAULT_INPUT_EXT


def strip_audio_extension(name: str) -> str:
    """Drop a trailing known audio extension ("voice.mp3" -> "voice")."""
    if guess_format_from_extension(name):
        return name.rsplit(".", 1)[0]
    return name


def strip_any_extension(name: str) -> str:
    """Drop the last extension of a file name, whatever it is ("voice.3gp" -> "voice")."""
    return PurePosixPath(name.replace("\\", "/")).stem
