"""SILK Voice Converter - Error taxonomy.

Every failure a request can hit is a ConvertError carrying a stable
error_code and a human-readable message. The HTTP layer maps codes to
status codes; nothing here knows about HTTP.
"""

from __future__ import annotations

from enum import StrEnum


class ConvertErrorCode(StrEnum):
    """Error codes surfaced in JSON error responses."""

    INVALID_REQUEST = "INVALID_REQUEST"
    MISSING_INPUT = "MISSING_INPUT"
    DOWNLOAD_FAILED = "DOWNLOAD_FAILED"
    DECODE_FAILED = "DECODE_FAILED"
    EMPTY_INPUT = "EMPTY_INPUT"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    INPUT_NOT_FOUND = "INPUT_NOT_FOUND"
    CONVERSION_TIMEOUT = "CONVERSION_TIMEOUT"
    CONVERSION_FAILED = "CONVERSION_FAILED"


class ConvertError(Exception):
    """Base exception for conversion request errors."""

    def __init__(self, error_code: str, message: str):
        self.error_code = error_code
        self.message = message
        super().__init__(f"{error_code}: {message}")


# --- Input resolution ---


class InputError(ConvertError):
    """Base exception for failures while acquiring the input audio."""


class InvalidRequestError(InputError):
    """Request body could not be parsed."""

    def __init__(self, reason: str):
        super().__init__(ConvertErrorCode.INVALID_REQUEST, f"Invalid request body: {reason}")


class MissingInputError(InputError):
    """No file, URL or Base64 payload was provided."""

    def __init__(self):
        super().__init__(
            ConvertErrorCode.MISSING_INPUT,
            "Provide an audio file, an audio URL or a Base64 payload",
        )


class DownloadError(InputError):
    """Remote fetch failed (network, status, size limit or write)."""

    def __init__(self, url: str, reason: str):
        self.url = url
        super().__init__(
            ConvertErrorCode.DOWNLOAD_FAILED,
            f"Unable to download audio from {url}: {reason}",
        )


class DecodeError(InputError):
    """Base64 payload is malformed."""

    def __init__(self, reason: str):
        super().__init__(ConvertErrorCode.DECODE_FAILED, f"Invalid Base64 audio: {reason}")


class EmptyInputError(InputError):
    """Resolved input file is empty."""

    def __init__(self, source: str):
        super().__init__(ConvertErrorCode.EMPTY_INPUT, f"Input audio from {source} is empty")


class PayloadTooLargeError(InputError):
    """Inline payload exceeds the configured size limit."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            ConvertErrorCode.PAYLOAD_TOO_LARGE,
            f"Payload of {size} characters exceeds limit of {limit}",
        )


# --- Conversion ---


class ConversionError(ConvertError):
    """Base exception for failures inside the conversion coordinator."""


class InputNotFoundError(ConversionError):
    """Input artifact is missing when conversion starts."""

    def __init__(self, path: str):
        super().__init__(ConvertErrorCode.INPUT_NOT_FOUND, f"Input file not found: {path}")


class ConversionTimeoutError(ConversionError):
    """Codec did not complete within the timeout."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(
            ConvertErrorCode.CONVERSION_TIMEOUT,
            f"Conversion did not complete within {timeout:g} seconds",
        )


class ConversionFailedError(ConversionError):
    """Codec reported an error for this invocation."""

    def __init__(self, reason: str):
        super().__init__(ConvertErrorCode.CONVERSION_FAILED, f"Conversion failed: {reason}")
