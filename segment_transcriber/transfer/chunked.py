"""Sending side of the chunked transfer: split, send in order, report progress.

WHY: The UI hands over a whole audio file; the receiver wants it as a
sequence of fixed-size chunks under one session id. The sender must stop
at the first failed chunk because a partial file is useless.

HOW: split_into_chunks() slices the payload. ChunkedUploader opens a
session through a transport, sends chunks 0..total-1 strictly in order,
reports (sent / total) * upload_fraction after each one, and returns the
assembled path from the last call. Two transports exist: one that talks
to an in-process UploadSessionStore and one that talks to the HTTP API.

RULES:
- Chunk size is fixed (default 1 MiB); only the last chunk may be shorter
- An empty payload is rejected before a session is opened
- On any failure the session is aborted (best effort) and TransferError raised
- Progress never exceeds upload_fraction; the remainder is for the
  "prepare for playback" phase that follows
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional, Protocol

import httpx

from segment_transcriber.config import CHUNK_SIZE_BYTES, UPLOAD_FRACTION
from segment_transcriber.errors import TransferError
from segment_transcriber.transfer.sessions import UploadSessionStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


def split_into_chunks(data: bytes, chunk_size: int = CHUNK_SIZE_BYTES) -> List[bytes]:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return [data[i:i + chunk_size] for i in range(0, len(data), chunk_size)]


def upload_progress(sent: int, total: int, fraction: float = UPLOAD_FRACTION) -> float:
    """Progress in 0..fraction after sent of total chunks."""
    if total <= 0:
        return 0.0
    return (min(sent, total) / total) * fraction


class ChunkTransport(Protocol):
    async def begin_upload(self, filename: str) -> str:
        ...

    async def send_chunk(
        self, session_id: str, index: int, total: int, data: bytes, filename: str
    ) -> Optional[str]:
        ...

    async def abort(self, session_id: str) -> None:
        ...


class LocalChunkTransport:
    """Transport that feeds an in-process UploadSessionStore."""

    def __init__(self, store: UploadSessionStore) -> None:
        self._store = store

    async def begin_upload(self, filename: str) -> str:
        return self._store.begin_upload(filename)

    async def send_chunk(
        self, session_id: str, index: int, total: int, data: bytes, filename: str
    ) -> Optional[str]:
        path = self._store.receive_chunk(session_id, index, total, data)
        return str(path) if path is not None else None

    async def abort(self, session_id: str) -> None:
        self._store.abort(session_id)


class HttpChunkTransport:
    """Transport that talks to the /uploads endpoints of the HTTP API.

    Use as: async with HttpChunkTransport(base_url) as transport: ...
    """

    def __init__(
        self,
        base_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> HttpChunkTransport:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
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
            raise RuntimeError("HttpChunkTransport must be used as an async context manager")
        return self._client

    @staticmethod
    def _check(resp: httpx.Response) -> dict:
        if not resp.is_success:
            try:
                detail = resp.json().get("detail", resp.text)
            except ValueError:
                detail = resp.text
            raise TransferError("Upload API error {}: {}".format(resp.status_code, detail))
        return resp.json()

    async def begin_upload(self, filename: str) -> str:
        client = self._ensure_client()
        resp = await client.post("/uploads", json={"filename": filename})
        return self._check(resp)["session_id"]

    async def send_chunk(
        self, session_id: str, index: int, total: int, data: bytes, filename: str
    ) -> Optional[str]:
        client = self._ensure_client()
        resp = await client.post(
            "/uploads/{}/chunks".format(session_id),
            files={"chunk": ("chunk_{:06d}".format(index), data, "application/octet-stream")},
            data={"index": str(index), "total": str(total), "filename": filename},
        )
        return self._check(resp).get("path")

    async def abort(self, session_id: str) -> None:
        client = self._ensure_client()
        await client.delete("/uploads/{}".format(session_id))


class ChunkedUploader:
    """Sends a payload through a ChunkTransport and returns the assembled path."""

    def __init__(
        self,
        transport: ChunkTransport,
        chunk_size: int = CHUNK_SIZE_BYTES,
        upload_fraction: float = UPLOAD_FRACTION,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        if not 0.0 < upload_fraction <= 1.0:
            raise ValueError("upload_fraction must be in (0, 1]")
        self._transport = transport
        self._chunk_size = chunk_size
        self._fraction = upload_fraction
        self._on_progress = on_progress

    @property
    def upload_fraction(self) -> float:
        return self._fraction

    async def upload_file(self, path: str | Path) -> str:
        path = Path(path)
        return await self.upload(path.name, path.read_bytes())

    async def upload(self, filename: str, data: bytes) -> str:
        """Send data in order and return the receiver's assembled path.

        Raises:
            TransferError: if the payload is empty, any chunk fails, or the
                receiver did not report a path for the final chunk.
        """
        chunks = split_into_chunks(data, self._chunk_size)
        if not chunks:
            raise TransferError("Cannot upload an empty file: {}".format(filename))
        total = len(chunks)

        try:
            session_id = await self._transport.begin_upload(filename)
        except TransferError:
            raise
        except Exception as exc:
            raise TransferError("Failed to begin upload: {}".format(exc)) from exc

        final_path: Optional[str] = None
        try:
            for index, chunk in enumerate(chunks):
                final_path = await self._transport.send_chunk(
                    session_id, index, total, chunk, filename
                )
                if self._on_progress:
                    self._on_progress(upload_progress(index + 1, total, self._fraction))
        except Exception as exc:
            logger.warning("Upload %s failed, aborting session: %s", session_id, exc)
            await self._abort_quietly(session_id)
            if isinstance(exc, TransferError):
                raise
            raise TransferError("Chunk upload failed: {}".format(exc)) from exc

        if not final_path:
            raise TransferError("Receiver did not assemble {}".format(filename))
        logger.info("Uploaded %s in %d chunks to %s", filename, total, final_path)
        return final_path

    async def _abort_quietly(self, session_id: str) -> None:
        try:
            await self._transport.abort(session_id)
        except Exception:
            logger.warning("Failed to abort upload session %s", session_id)
