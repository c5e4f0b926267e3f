"""Sequential per-segment transcription with isolated failure handling.

WHY: A recording may have hundreds of segments. Each one must be sent to
the speech-to-text service in order, one at a time, and a single bad
segment (corrupt slice, service hiccup) must not throw away the work done
on the others.

HOW: TranscriptionOrchestrator walks the Project's segments in collection
order. For each segment it resolves audio (own slice, else extracted from
the project's source audio), moves the segment through
Pending → Transcribing → Done | Failed with the pure transitions on
Segment, and swaps the new value into the Project. Between segments it
awaits the pacer. A CancellationToken is checked before each segment.

RULES:
- Strictly sequential: never two transcription calls in flight
- Extraction runs in a worker thread via asyncio.to_thread
- Collection order is never changed
- Extraction and transcription failures are recorded on the segment and
  the batch continues
- Missing audio fails the segment with "no audio available"
- Cancellation skips the remaining segments; an in-flight call is not
  interrupted
- BatchStatus counts completed vs total for the caller
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol

from segment_transcriber.audio.extractor import SegmentAudioExtractor
from segment_transcriber.core.segments import Project, Segment
from segment_transcriber.errors import ExtractionError, TranscriptionError
from segment_transcriber.pipeline.pacing import FixedDelayPacer

logger = logging.getLogger(__name__)

NO_AUDIO_MESSAGE = "No audio available for this segment"

Transcriber = Callable[[bytes, int], Awaitable[str]]
SegmentCallback = Callable[[int, Segment], None]
StatusCallback = Callable[[str], None]


class Pacer(Protocol):
    async def wait(self) -> None:
        ...


class CancellationToken:
    """Cooperative cancellation flag checked between segments."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class BatchStatus:
    """Outcome of a transcribe_all() run.

    RULES:
    - total: segments the batch was asked to process
    - completed: segments that ended in a successful transcription
    - failed: segments that ended with an error
    - skipped: segments not attempted (pending_only filter or cancellation)
    - cancelled: True if the token stopped the batch early
    """

    total: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: bool = False

    @property
    def processed(self) -> int:
        return self.completed + self.failed

    def status_text(self) -> str:
        text = "Transcribed {}/{} segments".format(self.completed, self.total)
        if self.failed:
            text += ", {} failed".format(self.failed)
        if self.cancelled:
            text += " (cancelled)"
        return text


class TranscriptionOrchestrator:
    """Drives the per-segment transcription state machine over a Project.

    Args:
        transcriber: async callable (audio bytes, segment index) -> text,
            e.g. SpeechToTextClient.transcribe.
        extractor: used when a segment has no audio of its own.
        pacer: awaited between segments (default 500 ms fixed delay).
        on_segment: called with (index, segment) after every state change.
        on_status: called with human-readable progress lines.
    """

    def __init__(
        self,
        transcriber: Transcriber,
        extractor: Optional[SegmentAudioExtractor] = None,
        pacer: Optional[Pacer] = None,
        on_segment: Optional[SegmentCallback] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> None:
        self._transcriber = transcriber
        self._extractor = extractor or SegmentAudioExtractor()
        self._pacer = pacer if pacer is not None else FixedDelayPacer()
        self._on_segment = on_segment
        self._on_status = on_status

    def _update(self, project: Project, index: int, segment: Segment) -> Segment:
        project.replace_segment(index, segment)
        if self._on_segment:
            self._on_segment(index, segment)
        return segment

    def _status(self, message: str) -> None:
        if self._on_status:
            self._on_status(message)

    def resolve_audio(self, project: Project, segment: Segment) -> bytes:
        """Return the segment's own audio, or extract it from the source audio.

        Raises:
            ExtractionError: if there is no audio to use or extraction fails.
        """
        if segment.audio_slice:
            return segment.audio_slice
        if not project.source_audio:
            raise ExtractionError(NO_AUDIO_MESSAGE)
        return self._extractor.extract(
            project.source_audio,
            segment.start_time_seconds,
            segment.end_time_seconds,
        )

    async def transcribe_segment(self, project: Project, index: int) -> Segment:
        """Run one segment through Transcribing → Done | Failed.

        Never raises for audio or service failures; they end up in the
        returned segment's transcription_error.
        """
        segment = project.segments[index]

        try:
            audio = await asyncio.to_thread(self.resolve_audio, project, segment)
        except ExtractionError as exc:
            logger.warning("Segment %d: audio extraction failed: %s", index, exc)
            return self._update(project, index, segment.fail(str(exc)))

        segment = self._update(project, index, segment.begin_transcription())
        try:
            text = await self._transcriber(audio, index)
        except TranscriptionError as exc:
            logger.warning("Segment %d: transcription failed: %s", index, exc)
            return self._update(project, index, segment.fail(str(exc)))
        except Exception as exc:
            logger.exception("Segment %d: unexpected transcription failure", index)
            return self._update(project, index, segment.fail(str(exc)))

        return self._update(project, index, segment.complete(text))

    async def retry_segment(self, project: Project, index: int) -> Segment:
        """Re-run a single (usually failed) segment in isolation."""
        self._status("Retrying segment {}...".format(index + 1))
        return await self.transcribe_segment(project, index)

    async def transcribe_all(
        self,
        project: Project,
        pending_only: bool = False,
        cancel_token: Optional[CancellationToken] = None,
    ) -> BatchStatus:
        """Transcribe the project's segments strictly in collection order.

        Args:
            project: The project whose segments are updated in place.
            pending_only: Skip segments that already have text.
            cancel_token: Checked before each segment.

        Returns:
            BatchStatus with completed/failed/skipped counts.
        """
        indices = [
            i for i, s in enumerate(project.segments)
            if not (pending_only and s.has_text)
        ]
        status = BatchStatus(total=len(indices), skipped=len(project.segments) - len(indices))

        for position, index in enumerate(indices):
            if cancel_token is not None and cancel_token.cancelled:
                status.cancelled = True
                status.skipped += len(indices) - position
                logger.info("Transcription batch cancelled before segment %d", index)
                break

            self._status("Transcribing segment {}/{}...".format(position + 1, len(indices)))
            result = await self.transcribe_segment(project, index)
            if result.transcription_error:
                status.failed += 1
            else:
                status.completed += 1

            if position < len(indices) - 1:
                await self._pacer.wait()

        self._status(status.status_text())
        return status
