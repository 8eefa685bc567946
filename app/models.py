"""SILK Voice Converter - Request and artifact models.

All entities are transient and filesystem-resident: there is no database.
A ConversionRequest is one of three source variants; the resolver turns it
into an InputArtifact and the coordinator turns that into an OutputArtifact.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from typing import BinaryIO


class InputSource(StrEnum):
    """Where the input audio came from."""

    UPLOAD = "upload"
    URL = "url"
    BASE64 = "base64"


class ConversionState(StrEnum):
    """Lifecycle of one conversion.

    Pending -> (CacheHit | Encoding) -> (Completed | TimedOut | Failed).
    CacheHit short-circuits directly to Completed.
    """

    PENDING = "pending"
    CACHE_HIT = "cache_hit"
    ENCODING = "encoding"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


# --- Request variants ---


@dataclass
class UploadedFile:
    """Multipart upload; the stream is read once by the resolver."""

    stream: BinaryIO
    original_name: str | None = None


@dataclass
class RemoteURL:
    """Audio fetched from a client-supplied URL."""

    url: str
    file_name: str | None = None


@dataclass
class Base64Payload:
    """Inline Base64 audio, optionally with a data-URI prefix."""

    data: str
    file_name: str | None = None


ConversionRequest = Union[UploadedFile, RemoteURL, Base64Payload]


def select_request(
    upload: UploadedFile | None = None,
    audio_url: str | None = None,
    base64_audio: str | None = None,
    file_name: str | None = None,
) -> ConversionRequest | None:
    """Pick the request variant by precedence: upload > URL > Base64.

    Returns:
        The selected variant, or None when no source is present.
    """
    if upload is not None:
        return upload
    if audio_url:
        return RemoteURL(url=audio_url, file_name=file_name)
    if base64_audio:
        return Base64Payload(data=base64_audio, file_name=file_name)
    return None


# --- Artifacts ---


@dataclass
class InputArtifact:
    """Local file holding raw input audio, owned by one request."""

    path: Path
    logical_name: str
    source: InputSource
    size_bytes: int


@dataclass
class OutputArtifact:
    """Local SILK file produced (or reused) by the coordinator."""

    path: Path
    cache_key: str
    cache_hit: bool = False
    state: ConversionState = ConversionState.COMPLETED
