"""Audio ingestion: upload a recording, detect speech, build a Project.

WHY: Opening a recording is a fixed sequence of shared setup steps
(transfer, detection, loading the payload for playback and extraction).
Any failure in them aborts the whole run with one message, unlike the
per-segment failures handled by the orchestrator.

HOW: ingest_audio_file() sends the file through a ChunkedUploader, runs
the detector on the assembled file (never on a partial upload), then
reads the assembled file back as the project's source audio. Progress is
reported as a fraction in [0, 1]: the upload fills UPLOAD_FRACTION and
the remaining share covers detection and playback preparation.

RULES:
- Detection starts only after the final chunk has been assembled
- The detector runs in a worker thread via asyncio.to_thread
- TransferError and DetectionError propagate unchanged
- The assembled file is removed afterwards unless keep_upload is True
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional

from segment_transcriber.config import MERGE_GAP_S, UPLOAD_FRACTION
from segment_transcriber.core.detection import SegmentDetector, run_detection, validate_audio_path
from segment_transcriber.core.segments import Project
from segment_transcriber.errors import DetectionError
from segment_transcriber.transfer.chunked import ChunkedUploader, LocalChunkTransport
from segment_transcriber.transfer.sessions import UploadSessionStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]
StatusCallback = Callable[[str], None]


async def ingest_audio_file(
    path: str | Path,
    detector: SegmentDetector,
    uploader: Optional[ChunkedUploader] = None,
    on_progress: Optional[ProgressCallback] = None,
    on_status: Optional[StatusCallback] = None,
    merge_gap_s: Optional[float] = MERGE_GAP_S,
    keep_upload: bool = False,
) -> Project:
    """Turn an audio file into a Project of detected speech segments.

    Args:
        path: The recording to open.
        detector: External voice-activity detector.
        uploader: Chunked uploader; defaults to an in-process session store.
        on_progress: Receives overall progress in [0, 1].
        on_status: Receives human-readable status lines.
        merge_gap_s: Merge segments closer than this; None disables merging.
        keep_upload: Keep the assembled copy instead of deleting it.

    Raises:
        DetectionError: unsupported file, detector failure, bad boundaries.
        TransferError: any chunk failed.
    """
    path = Path(path)
    validate_audio_path(path)

    def _progress(value: float) -> None:
        if on_progress:
            on_progress(max(0.0, min(1.0, value)))

    def _status(message: str) -> None:
        logger.info(message)
        if on_status:
            on_status(message)

    if uploader is None:
        uploader = ChunkedUploader(
            LocalChunkTransport(UploadSessionStore()),
            on_progress=_progress,
        )

    _status("Uploading {}...".format(path.name))
    assembled = Path(await uploader.upload_file(path))

    try:
        _status("Detecting speech segments...")
        segments = await asyncio.to_thread(
            run_detection, detector, assembled, on_status=_status, merge_gap_s=merge_gap_s
        )
        _progress(playback_progress(0.5, uploader.upload_fraction))

        _status("Preparing audio for playback...")
        try:
            source_audio = assembled.read_bytes()
        except OSError as exc:
            raise DetectionError("Cannot read assembled audio: {}".format(exc)) from exc
        _progress(1.0)
    finally:
        if not keep_upload:
            assembled.unlink(missing_ok=True)

    project = Project(name=path.stem, source_filename=path.name, source_audio=source_audio)
    project.set_segments(segments)
    _status("Ready: {} segments".format(len(project.segments)))
    return project


def playback_progress(step_fraction: float, upload_fraction: float = UPLOAD_FRACTION) -> float:
    """Map progress within the post-upload phase onto the overall bar."""
    step_fraction = max(0.0, min(1.0, step_fraction))
    return upload_fraction + (1.0 - upload_fraction) * step_fraction
