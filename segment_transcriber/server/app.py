"""FastAPI application exposing the pipeline's platform operations.

WHY: The editor front end (and curl, scripts, other tools) needs an HTTP
surface for the operations the pipeline consumes: chunked upload of large
recordings, reading an assembled file as a payload, cutting segment audio,
transcribing one segment, checking that a referenced file exists, and
rendering exports. FastAPI provides request validation and OpenAPI docs.

HOW: A single FastAPI app groups endpoints by tag. Uploads go through a
module-level UploadSessionStore whose abandoned sessions are reaped by a
periodic task started in the lifespan. Audio extraction and export are
synchronous endpoints so FastAPI runs them in its threadpool.

RULES:
- All endpoints have OpenAPI descriptions and document their errors
- Error responses use a consistent ErrorResponse schema
- 400 precondition/validation, 404 unknown session or file,
  409 upload aborted, 422 unparseable input, 502 transcription service failure
- The session store is a singleton created at import time
- Python 3.9+ compatible (no match/case, no PEP 604 unions)
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated, Any, Dict, List, Optional

from fastapi import Body, FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import Response

from segment_transcriber import __version__
from segment_transcriber.api.client import SpeechToTextClient
from segment_transcriber.audio.extractor import SegmentAudioExtractor
from segment_transcriber.audio.wav import from_base64, payload_to_encoded_audio, to_base64
from segment_transcriber.config import SUPPORTED_AUDIO_FORMATS
from segment_transcriber.core.serializer import project_from_dict
from segment_transcriber.errors import (
    ExtractionError,
    InvalidRangeError,
    SerializationError,
    TranscriptionError,
    TransferError,
)
from segment_transcriber.formatters import FORMATTERS
from segment_transcriber.server.models import (
    AudioPayloadRequest,
    AudioPayloadResponse,
    ChunkReceivedResponse,
    ErrorResponse,
    ExtractRequest,
    ExtractResponse,
    FileExistsResponse,
    FormatInfo,
    HealthResponse,
    TranscriptionResult,
    UploadCreatedResponse,
    UploadCreateRequest,
)
from segment_transcriber.transfer.sessions import UploadSessionStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

session_store = UploadSessionStore()
extractor = SegmentAudioExtractor()


async def _periodic_cleanup() -> None:
    """Drop abandoned upload sessions every 5 minutes."""
    while True:
        await asyncio.sleep(300)
        removed = session_store.cleanup_expired()
        if removed:
            logger.info("Removed %d expired upload sessions", removed)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start periodic cleanup on startup, cancel on shutdown."""
    task = asyncio.create_task(_periodic_cleanup())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    lifespan=lifespan,
    title="Segment Transcriber API",
    description=(
        "REST API for uploading recordings in chunks, cutting segment audio, "
        "transcribing individual speech segments, and exporting transcripts "
        "as plain text, Markdown, WebVTT or SubRip."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _validate_audio_extension(filename: str) -> None:
    """Raise HTTPException if the file extension is not supported."""
    ext = Path(filename).suffix.lower()
    if ext not in SUPPORTED_AUDIO_FORMATS:
        raise HTTPException(
            status_code=400,
            detail="Unsupported audio format '{}'. Supported formats: {}".format(
                ext, ", ".join(sorted(SUPPORTED_AUDIO_FORMATS))
            ),
        )


def _decode_base64_field(value: str, field: str) -> bytes:
    try:
        return from_base64(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="{}: {}".format(field, exc))


# ---------------------------------------------------------------------------
# Endpoints: Uploads
# ---------------------------------------------------------------------------


@app.post(
    "/uploads",
    response_model=UploadCreatedResponse,
    status_code=201,
    tags=["uploads"],
    summary="Begin a chunked upload",
    description=(
        "Open an upload session. Send the file's chunks to "
        "POST /uploads/{session_id}/chunks in index order."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Unsupported file type"},
        429: {"model": ErrorResponse, "description": "Too many open uploads"},
    },
)
async def create_upload(request: UploadCreateRequest) -> UploadCreatedResponse:
    filename = Path(request.filename).name
    _validate_audio_extension(filename)
    try:
        session_id = session_store.begin_upload(filename)
    except TransferError as exc:
        raise HTTPException(status_code=429, detail=str(exc))
    return UploadCreatedResponse(session_id=session_id, filename=filename)


@app.post(
    "/uploads/{session_id}/chunks",
    response_model=ChunkReceivedResponse,
    tags=["uploads"],
    summary="Send one chunk",
    description=(
        "Store chunk `index` of `total`. An unknown session is created when "
        "index is 0. The chunk with index total-1 assembles the file and the "
        "response carries its path. Any failure aborts the whole upload."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Upload session not found"},
        409: {"model": ErrorResponse, "description": "Chunk rejected; upload aborted"},
    },
)
async def upload_chunk(
    session_id: str,
    chunk: Annotated[UploadFile, File(description="Raw bytes of this chunk.")],
    index: Annotated[int, Form(description="0-based chunk index.")],
    total: Annotated[int, Form(description="Total number of chunks.")],
    filename: Annotated[
        Optional[str],
        Form(description="Original file name; required when index is 0 for a new session."),
    ] = None,
) -> ChunkReceivedResponse:
    if session_store.get_session(session_id) is None and index != 0:
        raise HTTPException(
            status_code=404, detail="Upload session not found: {}".format(session_id)
        )

    data = await chunk.read()
    try:
        path = session_store.begin_or_continue(
            session_id, filename or chunk.filename or "upload", index, total, data
        )
    except TransferError as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    return ChunkReceivedResponse(
        session_id=session_id,
        index=index,
        total=total,
        completed=path is not None,
        path=str(path) if path is not None else None,
    )


@app.delete(
    "/uploads/{session_id}",
    status_code=204,
    tags=["uploads"],
    summary="Abort an upload",
    description="Drop an unfinished upload session and its stored chunks.",
    responses={
        404: {"model": ErrorResponse, "description": "Upload session not found"},
    },
)
async def abort_upload(session_id: str) -> Response:
    if not session_store.abort(session_id):
        raise HTTPException(
            status_code=404, detail="Upload session not found: {}".format(session_id)
        )
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Endpoints: Audio
# ---------------------------------------------------------------------------


@app.post(
    "/audio/payload",
    response_model=AudioPayloadResponse,
    tags=["audio"],
    summary="Read an audio file as a whole-file payload",
    responses={
        400: {"model": ErrorResponse, "description": "Unsupported file type"},
        404: {"model": ErrorResponse, "description": "File not found"},
    },
)
def audio_payload(request: AudioPayloadRequest) -> AudioPayloadResponse:
    path = Path(request.path)
    if not path.is_file():
        raise HTTPException(status_code=404, detail="File not found: {}".format(path))
    _validate_audio_extension(path.name)
    encoded = payload_to_encoded_audio(path)
    return AudioPayloadResponse(
        filename=path.name,
        audio_base64=encoded,
        size=path.stat().st_size,
    )


@app.post(
    "/audio/extract",
    response_model=ExtractResponse,
    tags=["audio"],
    summary="Extract the audio of one time range",
    description=(
        "Decode the whole-file payload, cut [start_seconds, end_seconds) at "
        "sample boundaries, and return the slice as WAV. PCM WAV input keeps "
        "its own sample rate and channel count."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Invalid time range or base64"},
        422: {"model": ErrorResponse, "description": "Payload could not be decoded"},
    },
)
def extract_audio(request: ExtractRequest) -> ExtractResponse:
    payload = _decode_base64_field(request.audio_base64, "audio_base64")
    try:
        audio = extractor.extract(payload, request.start_seconds, request.end_seconds)
    except InvalidRangeError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except ExtractionError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return ExtractResponse(audio_base64=to_base64(audio))


# ---------------------------------------------------------------------------
# Endpoints: Transcriptions
# ---------------------------------------------------------------------------


@app.post(
    "/transcriptions",
    response_model=TranscriptionResult,
    tags=["transcriptions"],
    summary="Transcribe one segment",
    description=(
        "Send one segment's encoded audio to the speech-to-text service and "
        "return its text. The caller paces batch requests."
    ),
    responses={
        500: {"model": ErrorResponse, "description": "Service credentials not configured"},
        502: {"model": ErrorResponse, "description": "Speech-to-text service failed"},
    },
)
async def transcribe_segment(
    file: Annotated[UploadFile, File(description="Encoded audio of the segment (WAV).")],
    segment_index: Annotated[int, Form(description="Index of the segment in its project.")] = 0,
    model: Annotated[
        Optional[str], Form(description="Override the configured transcription model.")
    ] = None,
    language: Annotated[
        Optional[str], Form(description="ISO 639-1 language hint.")
    ] = None,
) -> TranscriptionResult:
    audio = await file.read()
    try:
        async with SpeechToTextClient(model=model, language=language) as client:
            text = await client.transcribe(audio, segment_index)
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    except TranscriptionError as exc:
        logger.warning("Transcription of segment %d failed: %s", segment_index, exc)
        raise HTTPException(status_code=502, detail=str(exc))
    return TranscriptionResult(segment_index=segment_index, text=text)


# ---------------------------------------------------------------------------
# Endpoints: Files
# ---------------------------------------------------------------------------


@app.get(
    "/files/exists",
    response_model=FileExistsResponse,
    tags=["files"],
    summary="Check whether a file exists",
    description="Used to locate the source audio referenced by an imported transcript.",
)
async def file_exists(
    path: Annotated[str, Query(description="Path to check.")],
) -> FileExistsResponse:
    return FileExistsResponse(path=path, exists=os.path.isfile(path))


# ---------------------------------------------------------------------------
# Endpoints: Exports and formats
# ---------------------------------------------------------------------------


@app.post(
    "/exports/{format_key}",
    tags=["exports"],
    summary="Render a project document in one export format",
    description=(
        "Accepts a project document (the JSON project file format) and "
        "returns the rendered file. Untranscribed segments are skipped."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Unknown export format"},
        422: {"model": ErrorResponse, "description": "Malformed project document"},
    },
)
def export_project(
    format_key: str,
    document: Annotated[Dict[str, Any], Body(description="Project document.")],
) -> Response:
    formatter_cls = FORMATTERS.get(format_key)
    if formatter_cls is None:
        raise HTTPException(
            status_code=404,
            detail="Unknown export format '{}'. Available: {}".format(
                format_key, ", ".join(sorted(FORMATTERS))
            ),
        )
    try:
        project = project_from_dict(document)
    except SerializationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    output = formatter_cls().format(project.segments)[0]
    filename = "{}{}".format(project.name or "transcript", output.suffix)
    return Response(
        content=output.content,
        media_type=output.media_type,
        headers={"Content-Disposition": 'attachment; filename="{}"'.format(filename)},
    )


@app.get(
    "/formats",
    response_model=List[FormatInfo],
    tags=["exports"],
    summary="List available export formats",
)
async def list_formats() -> List[FormatInfo]:
    result = []
    for key, formatter_cls in sorted(FORMATTERS.items()):
        formatter = formatter_cls()
        result.append(FormatInfo(
            key=key,
            name=formatter.name,
            suffix=formatter.suffix,
            media_type=formatter.media_type,
        ))
    return result


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        open_uploads=len(session_store.list_sessions()),
    )


def run_api(host: str = "0.0.0.0", port: int = 8000):
    """Entry point for the segment-transcriber-api console script."""
    import uvicorn
    uvicorn.run(app, host=host, port=port)
