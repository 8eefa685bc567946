"""SILK Voice Converter - Convert API FastAPI application.

POST /convert accepts one audio source and returns it SILK-encoded:
- multipart form: file part "audio" and/or text fields
- JSON (or urlencoded form) body: audioUrl, base64Audio, fileName

Precedence is upload > audioUrl > base64Audio. The input file is deleted
after the response is sent; converted output is kept as a cache unless
SILKCONV_KEEP_OUTPUT=0.

Run with:
    python -m services.convert_api
    uvicorn services.convert_api.main:app --reload  # dev server only
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Annotated

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from starlette.background import BackgroundTask
from starlette.datastructures import UploadFile as StarletteUploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from app.codec import Codec, SilkCodec
from app.config import (
    CONVERSION_TIMEOUT_SECONDS,
    DATA_DIR,
    DOWNLOAD_TIMEOUT_SECONDS,
    KEEP_OUTPUT,
    MAX_BASE64_CHARS,
    STATIC_DIR,
)
from app.coordinator import cleanup_artifacts, convert
from app.errors import ConvertError, ConvertErrorCode, InvalidRequestError
from app.models import ConversionRequest, UploadedFile, select_request
from app.resolver import resolve
from app.schemas import ConvertErrorResponse, ConvertRequestFields, HealthResponse
from app.utils.paths import ensure_staging_dirs, request_output_path, staging_dirs

logger = logging.getLogger(__name__)

UPLOAD_FIELD = "audio"
SILK_MEDIA_TYPE = "audio/silk"
_FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


# --- Lifespan ---


def _cleanup_orphan_temp_files_safe() -> None:
    """Clean up orphan temp files left by a crashed process (best-effort).

    Never crashes startup.
    """
    from app.utils.atomic_io import cleanup_orphan_temp_files

    try:
        total_cleaned = sum(cleanup_orphan_temp_files(d) for d in staging_dirs())
        if total_cleaned > 0:
            logger.info("Startup cleanup: removed %d orphan temp files", total_cleaned)
    except Exception:
        logger.warning("Startup cleanup failed (non-fatal)", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    Creates the staging area (fatal on failure), sweeps orphan temp files,
    and owns the shared HTTP client and codec.
    """
    try:
        ensure_staging_dirs()
    except OSError:
        logger.critical("Cannot create staging directories under %s", DATA_DIR, exc_info=True)
        raise

    _cleanup_orphan_temp_files_safe()

    app.state.codec = SilkCodec()
    app.state.http_client = httpx.AsyncClient(
        timeout=DOWNLOAD_TIMEOUT_SECONDS,
        follow_redirects=True,
    )
    try:
        yield
    finally:
        await app.state.http_client.aclose()


# --- FastAPI App ---


app = FastAPI(
    title="SILK Voice Converter",
    description="Convert uploaded, remote or Base64 audio to the SILK voice format.",
    version="0.1.0",
    lifespan=lifespan,
)


# --- Dependencies ---


def get_codec(request: Request) -> Codec:
    """Codec used for conversions (overridable in tests)."""
    return request.app.state.codec


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Shared client used for remote fetches (overridable in tests)."""
    return request.app.state.http_client


# --- Error Handling ---


def error_code_to_status(error_code: str) -> int:
    """Map error codes to HTTP status codes.

    Client input problems are 400 (413 for oversized payloads), a missing
    input artifact is 404, and codec/timeout failures are 500.
    """
    if error_code in (
        ConvertErrorCode.INVALID_REQUEST,
        ConvertErrorCode.MISSING_INPUT,
        ConvertErrorCode.DOWNLOAD_FAILED,
        ConvertErrorCode.DECODE_FAILED,
        ConvertErrorCode.EMPTY_INPUT,
    ):
        return 400
    if error_code == ConvertErrorCode.PAYLOAD_TOO_LARGE:
        return 413
    if error_code == ConvertErrorCode.INPUT_NOT_FOUND:
        return 404
    return 500


def make_error_response(error_code: str, error_message: str) -> JSONResponse:
    """Create a JSON error response."""
    return JSONResponse(
        status_code=error_code_to_status(error_code),
        content=ConvertErrorResponse(error=error_message, error_code=error_code).model_dump(),
    )


# --- Request Parsing ---


async def parse_conversion_request(request: Request) -> ConversionRequest | None:
    """Read the request body into a ConversionRequest variant.

    Returns:
        The selected variant, or None if no audio source is present.

    Raises:
        InvalidRequestError: If a JSON or form body cannot be parsed.
    """
    content_type = request.headers.get("content-type", "").lower()
    upload = None

    if content_type.startswith(_FORM_CONTENT_TYPES):
        # Text parts carry Base64 audio, so they get the same limit as JSON
        try:
            form = await request.form(max_part_size=MAX_BASE64_CHARS)
        except (StarletteHTTPException, MultiPartException) as e:
            detail = getattr(e, "detail", None) or getattr(e, "message", None) or str(e)
            raise InvalidRequestError(f"malformed form body: {detail}") from e
        audio = form.get(UPLOAD_FIELD)
        if isinstance(audio, StarletteUploadFile) and audio.filename:
            upload = UploadedFile(stream=audio.file, original_name=audio.filename)
        text_fields = {k: v for k, v in form.items() if isinstance(v, str)}
        fields = ConvertRequestFields.model_validate(text_fields)
    else:
        body = await request.body()
        if not body.strip():
            fields = ConvertRequestFields()
        else:
            try:
                fields = ConvertRequestFields.model_validate_json(body)
            except ValidationError as e:
                raise InvalidRequestError(
                    "expected a JSON object with audioUrl, base64Audio or fileName"
                ) from e

    return select_request(
        upload=upload,
        audio_url=fields.audio_url,
        base64_audio=fields.base64_audio,
        file_name=fields.file_name,
    )


# --- Endpoints ---


@app.post(
    "/convert",
    response_class=FileResponse,
    responses={
        200: {"content": {SILK_MEDIA_TYPE: {}}, "description": "SILK-encoded audio"},
        400: {"model": ConvertErrorResponse, "description": "Missing or invalid input"},
        404: {"model": ConvertErrorResponse, "description": "Input file not found"},
        413: {"model": ConvertErrorResponse, "description": "Payload too large"},
        500: {"model": ConvertErrorResponse, "description": "Conversion failed or timed out"},
    },
    summary="Convert audio to SILK",
    description="Convert an uploaded file, a remote URL or a Base64 payload to SILK.",
)
async def convert_audio(
    request: Request,
    codec: Annotated[Codec, Depends(get_codec)],
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
):
    """Convert one audio input and stream back the SILK file.

    Input resolution errors are returned before any conversion starts.
    On any failure after the input was stored, the input is deleted before
    the error response is returned.
    """
    keep_output = KEEP_OUTPUT
    input_artifact = None
    try:
        conversion_request = await parse_conversion_request(request)
        input_artifact = await resolve(conversion_request, http_client)
        # Without retention, each request owns its output so no other
        # request's cleanup can delete the file being served
        output = await convert(
            input_artifact.path,
            None if keep_output else request_output_path(input_artifact.path),
            codec=codec,
            timeout=CONVERSION_TIMEOUT_SECONDS,
        )
    except ConvertError as e:
        if input_artifact is not None:
            cleanup_artifacts(input_artifact.path)
        return make_error_response(e.error_code, e.message)
    except Exception:
        # Log full exception server-side, return generic message to client
        logger.exception("Unexpected error during conversion")
        if input_artifact is not None:
            cleanup_artifacts(input_artifact.path)
        return make_error_response(
            ConvertErrorCode.CONVERSION_FAILED,
            "An unexpected error occurred during conversion",
        )

    return FileResponse(
        output.path,
        media_type=SILK_MEDIA_TYPE,
        filename=f"{input_artifact.logical_name}.silk",
        headers={"X-Silk-Cache": "HIT" if output.cache_hit else "MISS"},
        background=BackgroundTask(
            cleanup_artifacts, input_artifact.path, output.path, keep_output
        ),
    )


@app.get("/health", response_model=HealthResponse, summary="Health check")
def health_check():
    """Simple health check endpoint."""
    return HealthResponse()


# Front-end page; mounted last so API routes take precedence
if STATIC_DIR.is_dir():
    app.mount("/", StaticFiles(directory=STATIC_DIR, html=True), name="static")
