"""SILK Voice Converter - Input resolver.

Turns a ConversionRequest into an InputArtifact: a local, non-empty file
holding the raw input audio, regardless of where it came from.

- UploadedFile: stream the upload into uploads/
- RemoteURL: stream an HTTP GET body into download/
- Base64Payload: decode (data-URI prefix accepted) into download/

Every write goes through the atomic publish rule, so a failed download or
decode never leaves a file behind at the input path.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import re
import time
import uuid
from pathlib import Path
from urllib.parse import urlsplit

import httpx

from app.config import (
    ALLOWED_URL_SCHEMES,
    DOWNLOAD_TIMEOUT_SECONDS,
    MAX_BASE64_CHARS,
    MAX_DOWNLOAD_BYTES,
)
from app.errors import (
    DecodeError,
    DownloadError,
    EmptyInputError,
    InputNotFoundError,
    MissingInputError,
    PayloadTooLargeError,
)
from app.models import (
    Base64Payload,
    ConversionRequest,
    InputArtifact,
    InputSource,
    RemoteURL,
    UploadedFile,
)
from app.utils.atomic_io import (
    AtomicFileWriter,
    atomic_stream_to_file,
    atomic_write_bytes,
    unique_temp_suffix,
)
from app.utils.audio_formats import (
    guess_format_from_extension,
    guess_format_from_mime,
    guess_format_from_url,
    input_ext,
    strip_any_extension,
    strip_audio_extension,
)
from app.utils.paths import download_input_path, sanitize_name, upload_input_path

logger = logging.getLogger(__name__)

# data:[<mime>][;param=value]*;base64,
_DATA_URI_PREFIX = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[\w.+-]+=[\w.+-]+)*;base64,",
    re.IGNORECASE,
)


def generate_request_id() -> str:
    """Generate a unique request ID.

    Uses UUID4 for uniqueness. Format: uuid4 hex (32 chars).
    """
    return uuid.uuid4().hex


def _generated_name(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}"


def _logical_name(client_name: str | None, prefix: str, strip=strip_audio_extension) -> str:
    """Logical base name: sanitized client name, else a timestamped default.

    Client fileName values only lose a known audio extension; uploaded file
    names lose whatever extension they carry.
    """
    if client_name:
        safe = sanitize_name(strip(client_name))
        if safe:
            return safe
    return _generated_name(prefix)


async def resolve(
    request: ConversionRequest | None,
    http_client: httpx.AsyncClient | None = None,
) -> InputArtifact:
    """Resolve a request into a local input file.

    Args:
        request: The selected request variant, or None if the client sent none.
        http_client: Client used for remote fetches. A short-lived client is
            created when omitted.

    Returns:
        InputArtifact whose file exists and is non-empty.

    Raises:
        MissingInputError: If no source was provided (no filesystem work done).
        DownloadError: If the remote fetch fails.
        DecodeError: If the Base64 payload is malformed.
        PayloadTooLargeError: If the Base64 payload exceeds the size limit.
        EmptyInputError: If the resolved input is empty.
    """
    if request is None:
        raise MissingInputError()

    request_id = generate_request_id()

    if isinstance(request, UploadedFile):
        path, logical_name, source = await _resolve_upload(request, request_id)
    elif isinstance(request, RemoteURL):
        path, logical_name, source = await _resolve_url(request, request_id, http_client)
    elif isinstance(request, Base64Payload):
        path, logical_name, source = await _resolve_base64(request, request_id)
    else:
        raise TypeError(f"Unsupported request type: {type(request).__name__}")

    artifact = _verify_input(path, logical_name, source)
    logger.info(
        "Resolved %s input %s (%d bytes) as %s",
        source,
        logical_name,
        artifact.size_bytes,
        artifact.path,
    )
    return artifact


async def _resolve_upload(
    request: UploadedFile,
    request_id: str,
) -> tuple[Path, str, InputSource]:
    logical_name = _logical_name(request.original_name, "upload", strip_any_extension)
    ext = input_ext(guess_format_from_extension(request.original_name))
    dest_path = upload_input_path(logical_name, request_id, ext)

    await asyncio.to_thread(
        atomic_stream_to_file, request.stream, dest_path, unique_temp_suffix()
    )
    return dest_path, logical_name, InputSource.UPLOAD


async def _resolve_url(
    request: RemoteURL,
    request_id: str,
    http_client: httpx.AsyncClient | None,
) -> tuple[Path, str, InputSource]:
    url = request.url.strip()
    try:
        scheme = urlsplit(url).scheme.lower()
    except ValueError as e:
        raise DownloadError(url, "malformed URL") from e
    if scheme not in ALLOWED_URL_SCHEMES:
        raise DownloadError(url, f"unsupported URL scheme {scheme!r}")

    logical_name = _logical_name(request.file_name, "download")
    ext = input_ext(guess_format_from_url(url))
    dest_path = download_input_path(logical_name, request_id, ext)

    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(
        timeout=DOWNLOAD_TIMEOUT_SECONDS,
        follow_redirects=True,
    )
    try:
        await _download_to(client, url, dest_path)
    finally:
        if owns_client:
            await client.aclose()

    return dest_path, logical_name, InputSource.URL


async def _download_to(client: httpx.AsyncClient, url: str, dest_path: Path) -> None:
    """Stream a GET response body to dest_path atomically.

    Raises:
        DownloadError: On network failure, non-2xx status, oversized body,
            or write failure. dest_path does not exist afterwards.
    """
    try:
        async with client.stream("GET", url) as response:
            if not response.is_success:
                raise DownloadError(url, f"HTTP {response.status_code}")

            declared = response.headers.get("Content-Length")
            if declared and declared.isdigit() and int(declared) > MAX_DOWNLOAD_BYTES:
                raise DownloadError(
                    url, f"Content-Length {declared} exceeds limit of {MAX_DOWNLOAD_BYTES} bytes"
                )

            with AtomicFileWriter(dest_path, unique_temp_suffix()) as writer:
                async for chunk in response.aiter_bytes():
                    if writer.bytes_written + len(chunk) > MAX_DOWNLOAD_BYTES:
                        raise DownloadError(
                            url, f"body exceeds limit of {MAX_DOWNLOAD_BYTES} bytes"
                        )
                    writer.write(chunk)
    except DownloadError:
        logger.warning("Download rejected for %s", url)
        raise
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning("Failed to fetch %s: %s", url, e)
        raise DownloadError(url, str(e) or type(e).__name__) from e
    except OSError as e:
        logger.error("Failed to write download from %s to %s: %s", url, dest_path, e)
        raise DownloadError(url, f"write failed: {e}") from e


def decode_base64_audio(data: str) -> tuple[bytes, str | None]:
    """Decode standard Base64 audio, accepting an optional data-URI prefix.

    Whitespace (including line breaks from wrapped encoders) is ignored.

    Returns:
        Tuple of (decoded_bytes, mime_type_from_prefix_or_None).

    Raises:
        DecodeError: If the payload is not valid standard Base64.
    """
    text = data.strip()
    mime = None

    match = _DATA_URI_PREFIX.match(text)
    if match:
        mime = match.group("mime")
        text = text[match.end() :]
    elif text[:5].lower() == "data:":
        raise DecodeError("data URI is not Base64-encoded")

    text = "".join(text.split())
    try:
        decoded = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(str(e)) from e

    return decoded, mime


async def _resolve_base64(
    request: Base64Payload,
    request_id: str,
) -> tuple[Path, str, InputSource]:
    if len(request.data) > MAX_BASE64_CHARS:
        raise PayloadTooLargeError(len(request.data), MAX_BASE64_CHARS)

    try:
        decoded, mime = decode_base64_audio(request.data)
    except DecodeError:
        logger.warning("Rejected malformed Base64 payload (%d chars)", len(request.data))
        raise

    logical_name = _logical_name(request.file_name, "base64")
    ext = input_ext(guess_format_from_mime(mime))
    dest_path = download_input_path(logical_name, request_id, ext)

    await asyncio.to_thread(atomic_write_bytes, dest_path, decoded, unique_temp_suffix())
    return dest_path, logical_name, InputSource.BASE64


def _verify_input(path: Path, logical_name: str, source: InputSource) -> InputArtifact:
    """Check the resolved file exists and is non-empty on disk.

    An empty file is removed before raising.
    """
    try:
        size = path.stat().st_size
    except FileNotFoundError as e:
        raise InputNotFoundError(str(path)) from e

    if size == 0:
        try:
            path.unlink()
        except OSError:
            logger.warning("Failed to remove empty input %s", path, exc_info=True)
        raise EmptyInputError(str(source))

    return InputArtifact(path=path, logical_name=logical_name, source=source, size_bytes=size)
