"""SILK Voice Converter - Pydantic models for API validation.

Pydantic models for request/response validation corresponding to
JSON schemas in /specs. Used by FastAPI for runtime validation.
"""

from pydantic import BaseModel, ConfigDict, Field

# --- Request Models ---


class ConvertRequestFields(BaseModel):
    """Text fields of a conversion request (JSON body or form fields).

    Corresponds to specs/convert_request.schema.json. The uploaded file
    itself is handled separately as a multipart part named "audio".
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    audio_url: str | None = Field(
        default=None,
        alias="audioUrl",
        description="http(s) URL of the audio to fetch and convert",
    )
    base64_audio: str | None = Field(
        default=None,
        alias="base64Audio",
        description="Standard Base64 audio, optionally prefixed with data:<mime>;base64,",
    )
    file_name: str | None = Field(
        default=None,
        alias="fileName",
        description="Base name for the input file and the returned .silk file",
    )


# --- Response Models ---


class ConvertErrorResponse(BaseModel):
    """Response for failed conversions.

    Corresponds to specs/convert_error.schema.json.
    """

    model_config = ConfigDict(extra="forbid")

    error: str = Field(..., description="Human-readable error description")
    error_code: str = Field(..., description="Stable error taxonomy code")


class HealthResponse(BaseModel):
    """Response for the health check."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(default="ok", description="Service status")


__all__ = [
    "ConvertRequestFields",
    "ConvertErrorResponse",
    "HealthResponse",
]
