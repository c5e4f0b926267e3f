"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation. Pydantic
models enforce field types at runtime and generate JSON Schema that
appears in the /docs UI.

HOW: Each endpoint pair (request + response) has its own model. All
models include Field descriptions for rich OpenAPI docs.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Binary audio always travels as base64 text
- Response models never expose internal implementation details
  (temp directories, chunk paths)
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------


class UploadCreateRequest(BaseModel):
    """Begin a chunked upload."""

    filename: str = Field(description="Original name of the file being uploaded.")


class UploadCreatedResponse(BaseModel):
    """Session handle returned by POST /uploads.

    RULES:
    - session_id is opaque; send it with every chunk of this upload
    """

    session_id: str = Field(description="Opaque upload session identifier.")
    filename: str = Field(description="Sanitized file name stored for the session.")


class ChunkReceivedResponse(BaseModel):
    """Result of storing one chunk.

    RULES:
    - path is only set on the response to the final chunk (index == total - 1)
    - completed is True exactly when path is set
    """

    session_id: str = Field(description="Upload session identifier.")
    index: int = Field(description="Index of the chunk that was stored.")
    total: int = Field(description="Total number of chunks in this upload.")
    completed: bool = Field(description="True once the file has been assembled.")
    path: Optional[str] = Field(
        default=None,
        description="Location of the assembled file, only on the final chunk.",
    )

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "session_id": "9f1c2e7a0b3d4c5e8f9a0b1c2d3e4f5a",
                "index": 11,
                "total": 12,
                "completed": True,
                "path": "/tmp/transcriber_audio/3b0c8a52-8f5e-4d7a-9a51-1c8f7d2e6a10.mp3",
            }
        ]
    }}


# ---------------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------------


class AudioPayloadRequest(BaseModel):
    """Read a stored audio file as a whole-file payload."""

    path: str = Field(description="Server-side path of an assembled audio file.")


class AudioPayloadResponse(BaseModel):
    filename: str = Field(description="File name of the audio.")
    audio_base64: str = Field(description="Whole-file encoded payload, base64.")
    size: int = Field(description="Payload size in bytes.")


class ExtractRequest(BaseModel):
    """Cut a time range out of a whole-file payload.

    RULES:
    - 0 <= start_seconds < end_seconds
    - end_seconds past the audio duration is clamped to the duration
    """

    audio_base64: str = Field(description="Whole-file encoded payload, base64.")
    start_seconds: float = Field(description="Start of the range in seconds.")
    end_seconds: float = Field(description="End of the range in seconds.")


class ExtractResponse(BaseModel):
    audio_base64: str = Field(
        description=(
            "Extracted slice as PCM WAV, base64. PCM WAV input keeps its sample "
            "rate, channel count and sample width; other inputs are decoded to "
            "16 kHz mono 16-bit."
        )
    )
    media_type: str = Field(default="audio/wav", description="MIME type of the slice.")


# ---------------------------------------------------------------------------
# Transcription
# ---------------------------------------------------------------------------


class TranscriptionResult(BaseModel):
    segment_index: int = Field(description="Index of the segment that was transcribed.")
    text: str = Field(description="Transcribed text.")


# ---------------------------------------------------------------------------
# Files, formats, health
# ---------------------------------------------------------------------------


class FileExistsResponse(BaseModel):
    path: str = Field(description="The path that was checked.")
    exists: bool = Field(description="True if a regular file exists at path.")


class FormatInfo(BaseModel):
    """Description of an available export format.

    WHY: Clients can query the /formats endpoint to discover which
    export formats are supported and what they produce.
    """

    key: str = Field(description="Format identifier used in API requests.")
    name: str = Field(description="Human-readable format name.")
    suffix: str = Field(description="File suffix produced (e.g. '.srt').")
    media_type: str = Field(description="MIME type of the produced file.")


class ErrorResponse(BaseModel):
    """Standard error response body.

    WHY: All error responses use the same schema for consistent
    client-side error handling.

    RULES:
    - detail is always a human-readable error message
    """

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
    open_uploads: int = Field(default=0, description="Number of unfinished upload sessions.")
