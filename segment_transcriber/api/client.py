"""Async HTTP client for an OpenAI-compatible speech-to-text endpoint.

WHY: The orchestrator needs one call per segment: "here is a WAV slice,
give me its text". This module hides authentication, multipart encoding
and error mapping so the orchestrator only sees text or a
TranscriptionError.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. SpeechToTextClient is
an async context manager. Enter it to get an authenticated connection
pool, exit to close it. transcribe() posts the audio as multipart form
data to {base_url}/audio/transcriptions and returns the "text" field.

RULES:
- Always use the async context manager (async with SpeechToTextClient() as client:)
- The uploaded file is named segment_{index}.wav with type audio/wav
- Non-2xx responses and transport failures raise TranscriptionError
- The API key comes from config.load_api_key() unless passed explicitly
"""

from __future__ import annotations

import logging

import httpx

from segment_transcriber.api.models import TranscriptionResponse
from segment_transcriber.audio.wav import from_base64
from segment_transcriber.config import (
    TRANSCRIBE_BASE_URL,
    TRANSCRIBE_LANGUAGE,
    TRANSCRIBE_MODEL,
    load_api_key,
)
from segment_transcriber.errors import TranscriptionError

logger = logging.getLogger(__name__)


class SpeechToTextAPIError(TranscriptionError):
    """Raised when the speech-to-text service returns an error response.

    RULES:
    - Always carries status_code and the response body as message
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"API error {status_code}: {message}")


class SpeechToTextClient:
    """Async client for per-segment transcription.

    RULES:
    - Use as: async with SpeechToTextClient() as client: ...
    - api_key defaults to load_api_key() from .env
    - base_url, model and language default to config values
    - transport is for tests (httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        language: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key or load_api_key()
        self._base_url = (base_url or TRANSCRIBE_BASE_URL).rstrip("/")
        self._model = model or TRANSCRIBE_MODEL
        self._language = language if language is not None else TRANSCRIBE_LANGUAGE
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> SpeechToTextClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=httpx.Timeout(120.0, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "SpeechToTextClient must be used as an async context manager: "
                "async with SpeechToTextClient() as client: ..."
            )
        return self._client

    async def transcribe(self, audio: bytes, segment_index: int) -> str:
        """Transcribe one WAV slice and return its text.

        Args:
            audio: Encoded audio for one segment.
            segment_index: Position of the segment, used in the upload name.

        Returns:
            The transcribed text (may be empty for silence).

        Raises:
            TranscriptionError: on transport failure, non-2xx status or an
                unparseable body.
        """
        client = self._ensure_client()
        data = {"model": self._model}
        if self._language:
            data["language"] = self._language

        try:
            resp = await client.post(
                "/audio/transcriptions",
                files={"file": (f"segment_{segment_index}.wav", audio, "audio/wav")},
                data=data,
            )
        except httpx.HTTPError as exc:
            raise TranscriptionError(f"Failed to send request: {exc}") from exc

        if not resp.is_success:
            raise SpeechToTextAPIError(resp.status_code, resp.text or "Unknown error")

        try:
            body = resp.json()
        except ValueError as exc:
            raise TranscriptionError(f"Failed to parse response: {exc}") from exc
        if not isinstance(body, dict):
            raise TranscriptionError("Failed to parse response: expected a JSON object")

        result = TranscriptionResponse.from_dict(body)
        logger.debug("Segment %d transcribed (%d chars)", segment_index, len(result.text))
        return result.text

    async def transcribe_base64(self, audio_base64: str, segment_index: int) -> str:
        """Same as transcribe() for a base64-encoded payload."""
        try:
            audio = from_base64(audio_base64)
        except ValueError as exc:
            raise TranscriptionError(f"Failed to decode base64: {exc}") from exc
        return await self.transcribe(audio, segment_index)
