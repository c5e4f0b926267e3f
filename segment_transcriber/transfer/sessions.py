"""In-memory upload session store that reassembles chunked uploads.

WHY: A large audio file arrives as many chunk requests. The receiver has to
correlate them under one session, keep them until every index is present,
write the assembled file exactly once, and release its temp state straight
after, or throw everything away the moment one chunk fails.

HOW: Three components work together:
  UploadStatus        enum of session states
  UploadSession       dataclass holding the session's temp dir, chunk map
                      and its own lock
  UploadSessionStore  thread-safe dict-based store with begin/receive/abort
                      and TTL cleanup of abandoned sessions

RULES:
- The session dict is protected by the store lock; a session's chunk state
  and status are only touched while holding that session's lock
- A chunk for a session that is no longer RECEIVING is an error
- Each session writes chunks to its own temp directory (chunk_000000, ...)
- total is fixed by the first chunk; a different total later is an error
- total is capped at max_chunks
- Out-of-order arrival is accepted; a duplicate index is an error
- The chunk carrying index total-1 triggers reconstruction; every index
  0..total-1 must have arrived by then
- Any failure aborts the session, deletes its temp directory and removes
  a partially written assembled file
- Finished and aborted sessions are removed from the store
"""

from __future__ import annotations

import enum
import logging
import shutil
import tempfile
import threading
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from segment_transcriber.config import MAX_UPLOAD_CHUNKS, SESSION_TTL_SECONDS, UPLOAD_DIR
from segment_transcriber.errors import TransferError

logger = logging.getLogger(__name__)


class UploadStatus(str, enum.Enum):
    """Lifecycle of an upload session."""

    RECEIVING = "receiving"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class UploadSession:
    """State for one upload attempt.

    RULES:
    - session_id: opaque, unique per upload attempt
    - total_chunks: None until the first chunk arrives
    - chunks: index → path of the stored chunk file
    - lock: guards chunks, total_chunks, bytes_received and status
    """

    session_id: str
    filename: str
    temp_dir: Path
    created_at: float
    updated_at: float
    status: UploadStatus = UploadStatus.RECEIVING
    total_chunks: Optional[int] = None
    chunks: Dict[int, Path] = field(default_factory=dict)
    bytes_received: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def missing_indices(self) -> List[int]:
        if self.total_chunks is None:
            return []
        return [i for i in range(self.total_chunks) if i not in self.chunks]


class UploadSessionStore:
    """Thread-safe store that turns chunk sequences into assembled files.

    Args:
        upload_dir: Where assembled files are written.
        ttl_seconds: Idle time after which an unfinished session is dropped.
        max_sessions: Upper bound on concurrently open sessions.
        max_chunks: Upper bound on the total chunk count of one upload.
    """

    def __init__(
        self,
        upload_dir: Path = UPLOAD_DIR,
        ttl_seconds: int = SESSION_TTL_SECONDS,
        max_sessions: int = 100,
        max_chunks: int = MAX_UPLOAD_CHUNKS,
    ) -> None:
        self._sessions: Dict[str, UploadSession] = {}
        self._lock = threading.Lock()
        self._upload_dir = Path(upload_dir)
        self._ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions
        self.max_chunks = max_chunks

    @property
    def upload_dir(self) -> Path:
        return self._upload_dir

    def begin_upload(self, filename: str, session_id: Optional[str] = None) -> str:
        """Open a new session and return its id.

        Raises:
            TransferError: if the id is already in use or the store is full.
        """
        safe_name = Path(filename or "upload").name
        with self._lock:
            if len(self._sessions) >= self.max_sessions:
                raise TransferError(
                    "Maximum number of concurrent uploads ({}) reached".format(self.max_sessions)
                )
            session_id = session_id or uuid.uuid4().hex
            if session_id in self._sessions:
                raise TransferError("Upload session {} already exists".format(session_id))

            now = time.time()
            self._sessions[session_id] = UploadSession(
                session_id=session_id,
                filename=safe_name,
                temp_dir=Path(tempfile.mkdtemp(prefix="upload_{}_".format(session_id[:8]))),
                created_at=now,
                updated_at=now,
            )

        logger.info("Began upload %s for file %s", session_id, safe_name)
        return session_id

    def get_session(self, session_id: str) -> Optional[UploadSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def list_sessions(self) -> List[UploadSession]:
        with self._lock:
            return sorted(self._sessions.values(), key=lambda s: s.created_at)

    def begin_or_continue(
        self,
        session_id: str,
        filename: str,
        index: int,
        total: int,
        data: bytes,
    ) -> Optional[Path]:
        """Create the session on its first chunk, then receive the chunk."""
        if index == 0 and self.get_session(session_id) is None:
            self.begin_upload(filename, session_id=session_id)
        return self.receive_chunk(session_id, index, total, data)

    def receive_chunk(
        self,
        session_id: str,
        index: int,
        total: int,
        data: bytes,
    ) -> Optional[Path]:
        """Store one chunk; on the final index assemble and return the file path.

        Returns:
            Path of the assembled file when index == total - 1, else None.

        Raises:
            TransferError: unknown or no longer receiving session,
                inconsistent or oversized total, out-of-range or duplicate
                index, missing chunks at finalization, or I/O failure. Every
                error except "unknown session" aborts the session.
        """
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise TransferError("Upload session not found: {}".format(session_id))

        try:
            with session.lock:
                if session.status is not UploadStatus.RECEIVING:
                    raise TransferError(
                        "Upload session {} is {}".format(session_id, session.status.value)
                    )
                return self._receive(session, index, total, data)
        except (TransferError, OSError) as exc:
            logger.exception("Upload %s failed on chunk %d", session_id, index)
            self.abort(session_id)
            if isinstance(exc, TransferError):
                raise
            raise TransferError("Failed to store chunk {}: {}".format(index, exc)) from exc

    def _receive(
        self,
        session: UploadSession,
        index: int,
        total: int,
        data: bytes,
    ) -> Optional[Path]:
        if total < 1:
            raise TransferError("total_chunks must be at least 1, got {}".format(total))
        if total > self.max_chunks:
            raise TransferError(
                "total_chunks {} exceeds the limit of {}".format(total, self.max_chunks)
            )
        if session.total_chunks is None:
            session.total_chunks = total
        elif session.total_chunks != total:
            raise TransferError(
                "Inconsistent total: session expects {} chunks, chunk {} says {}".format(
                    session.total_chunks, index, total
                )
            )
        if not 0 <= index < total:
            raise TransferError("Chunk index {} out of range 0..{}".format(index, total - 1))
        if index in session.chunks:
            raise TransferError("Chunk {} received twice".format(index))

        chunk_path = session.temp_dir / "chunk_{:06d}".format(index)
        chunk_path.write_bytes(data)
        session.chunks[index] = chunk_path
        session.bytes_received += len(data)
        session.updated_at = time.time()

        logger.debug(
            "Received chunk %d/%d for upload %s", index + 1, total, session.session_id
        )

        if index != total - 1:
            return None
        return self._finalize(session)

    def _finalize(self, session: UploadSession) -> Path:
        missing = session.missing_indices
        if missing:
            raise TransferError(
                "Missing chunks {} at finalization".format(
                    ", ".join(str(i) for i in missing[:10])
                )
            )

        self._upload_dir.mkdir(parents=True, exist_ok=True)
        ext = Path(session.filename).suffix or ".wav"
        final_path = self._upload_dir / "{}{}".format(uuid.uuid4(), ext)
        try:
            with open(final_path, "wb") as out:
                for i in range(session.total_chunks or 0):
                    out.write(session.chunks[i].read_bytes())
        except OSError:
            final_path.unlink(missing_ok=True)
            raise

        session.status = UploadStatus.COMPLETED
        with self._lock:
            self._sessions.pop(session.session_id, None)
        self._cleanup_temp_dir(session.temp_dir)

        logger.info(
            "Assembled upload %s (%d chunks, %d bytes) at %s",
            session.session_id, session.total_chunks, session.bytes_received, final_path,
        )
        return final_path

    def abort(self, session_id: str) -> bool:
        """Drop a session and its temp files. Returns False if it did not exist.

        Waits for a chunk that is being stored for the same session.
        """
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        with session.lock:
            session.status = UploadStatus.ABORTED
            self._cleanup_temp_dir(session.temp_dir)
        logger.info(
            "Aborted upload %s after %d of %s chunks (%d bytes)",
            session_id, len(session.chunks), session.total_chunks or "?", session.bytes_received,
        )
        return True

    def cleanup_expired(self) -> int:
        """Abort sessions idle for longer than the TTL. Returns the count."""
        now = time.time()
        with self._lock:
            expired = [
                sid for sid, s in self._sessions.items()
                if now - s.updated_at > self._ttl_seconds
            ]
        for sid in expired:
            self.abort(sid)
        return len(expired)

    @staticmethod
    def _cleanup_temp_dir(temp_dir: Path) -> None:
        if temp_dir.exists():
            try:
                shutil.rmtree(temp_dir)
            except OSError:
                logger.warning("Failed to clean up temp dir: %s", temp_dir)
