"""Segment and Project dataclasses with explicit transcription state transitions.

WHY: A recording is edited as an ordered list of speech segments, each with
its own transcription lifecycle (pending → transcribing → done | failed).
Keeping that lifecycle as explicit transitions on the data, instead of
ad-hoc field updates scattered across callers, makes every state change
visible and testable.

HOW: Segment is a frozen dataclass. Transition methods return a new
Segment via dataclasses.replace(); the Project swaps it into its ordered
list with replace_segment(). State is derived from the fields, so a
deserialized segment always lands in a consistent state.

RULES:
- Times are float seconds, samples are integer offsets at REFERENCE_SAMPLE_RATE
- end_time_seconds > start_time_seconds for every segment
- Project.segments stays sorted ascending by start_time_seconds
- transcription None means "not yet attempted"
- transcription_error and transcription are not both set in steady state;
  a failure keeps the previous transcription untouched
- is_transcribing is transient and never persisted
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence

from segment_transcriber.config import REFERENCE_SAMPLE_RATE


class SegmentState(str, enum.Enum):
    """Transcription lifecycle of a single segment.

    RULES:
    - pending: never attempted, or attempted with an empty result
    - transcribing: a call is in flight
    - done: transcription text present, no error
    - failed: the last attempt recorded an error (retryable)
    """

    PENDING = "pending"
    TRANSCRIBING = "transcribing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class Segment:
    """One detected or imported speech interval.

    WHY: Detection produces segments with their own audio; imports produce
    segments with only timing and text. Both flow through the same
    orchestrator and formatters.

    RULES:
    - audio_slice: encoded audio (WAV bytes) for this segment alone, or None
    - transcription: text, or None when never attempted
    - transcription_error: message of the last failed attempt, or None
    - is_transcribing: True only while a call for this segment is in flight
    """

    start_sample: int
    end_sample: int
    start_time_seconds: float
    end_time_seconds: float
    audio_slice: Optional[bytes] = field(default=None, repr=False)
    transcription: Optional[str] = None
    transcription_error: Optional[str] = None
    is_transcribing: bool = False

    @classmethod
    def from_times(
        cls,
        start_s: float,
        end_s: float,
        sample_rate: int = REFERENCE_SAMPLE_RATE,
        **kwargs,
    ) -> Segment:
        """Build a segment from times, deriving sample offsets at sample_rate."""
        return cls(
            start_sample=int(round(start_s * sample_rate)),
            end_sample=int(round(end_s * sample_rate)),
            start_time_seconds=float(start_s),
            end_time_seconds=float(end_s),
            **kwargs,
        )

    @property
    def duration_s(self) -> float:
        return self.end_time_seconds - self.start_time_seconds

    @property
    def has_audio(self) -> bool:
        return bool(self.audio_slice)

    @property
    def has_text(self) -> bool:
        return bool(self.transcription and self.transcription.strip())

    @property
    def state(self) -> SegmentState:
        if self.is_transcribing:
            return SegmentState.TRANSCRIBING
        if self.transcription_error:
            return SegmentState.FAILED
        if self.has_text:
            return SegmentState.DONE
        return SegmentState.PENDING

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def begin_transcription(self) -> Segment:
        """Pending | Failed | Done → Transcribing. Clears the previous error."""
        return replace(self, is_transcribing=True, transcription_error=None)

    def complete(self, text: str) -> Segment:
        """Transcribing → Done."""
        return replace(
            self,
            transcription=text,
            transcription_error=None,
            is_transcribing=False,
        )

    def fail(self, message: str) -> Segment:
        """Transcribing → Failed. The previous transcription is kept."""
        return replace(
            self,
            transcription_error=message or "Unknown error",
            is_transcribing=False,
        )

    def edit_text(self, text: str) -> Segment:
        """Manual correction from an editor; clears any recorded error."""
        return replace(self, transcription=text, transcription_error=None)

    def without_audio(self) -> Segment:
        return replace(self, audio_slice=None)


def is_ordered(segments: Sequence[Segment]) -> bool:
    """True if segments are ascending by start time and each has end > start."""
    previous_start = None
    for segment in segments:
        if segment.end_time_seconds <= segment.start_time_seconds:
            return False
        if previous_start is not None and segment.start_time_seconds < previous_start:
            return False
        previous_start = segment.start_time_seconds
    return True


def sort_segments(segments: Sequence[Segment]) -> List[Segment]:
    """Stable sort by start time; equal starts keep their relative order."""
    return sorted(segments, key=lambda s: s.start_time_seconds)


def merge_close_segments(
    segments: Sequence[Segment],
    max_gap_s: float,
) -> List[Segment]:
    """Merge neighbouring segments separated by at most max_gap_s seconds.

    WHY: Voice-activity detectors split speech at short breaths and pauses,
    producing many tiny segments that transcribe poorly on their own.

    HOW: Sort by start time, then walk left-to-right extending the current
    segment while the gap to the next one is <= max_gap_s.

    RULES:
    - A merged segment spans first start to last end
    - A merged segment loses its audio slice (it no longer matches)
    - Transcriptions of merged segments are joined with a single space
    - Unmerged segments are returned unchanged
    """
    ordered = sort_segments(segments)
    if not ordered:
        return []

    merged: List[Segment] = []
    current = ordered[0]
    for following in ordered[1:]:
        gap = following.start_time_seconds - current.end_time_seconds
        if gap <= max_gap_s:
            texts = [t for t in (current.transcription, following.transcription) if t]
            current = Segment(
                start_sample=current.start_sample,
                end_sample=max(current.end_sample, following.end_sample),
                start_time_seconds=current.start_time_seconds,
                end_time_seconds=max(current.end_time_seconds, following.end_time_seconds),
                audio_slice=None,
                transcription=" ".join(texts) if texts else None,
            )
        else:
            merged.append(current)
            current = following
    merged.append(current)
    return merged


@dataclass
class Project:
    """The aggregate for one editing session: source audio plus its segments.

    WHY: Segments are only meaningful together with the recording they were
    cut from. Segments without their own audio need the whole-file payload
    for extraction, so the Project owns both.

    RULES:
    - name: display name, also used as the export file stem
    - source_audio: whole-file encoded payload, or None when not located yet
    - source_filename: original file name of the source audio
    - segments: ordered ascending by start time, owned exclusively here
    - Any segment without audio_slice requires source_audio
    """

    name: str
    source_filename: str = ""
    source_audio: Optional[bytes] = field(default=None, repr=False)
    segments: List[Segment] = field(default_factory=list)

    @property
    def requires_source_audio(self) -> bool:
        return any(not s.has_audio for s in self.segments)

    @property
    def missing_audio(self) -> bool:
        """True when some segment can neither use its own audio nor extract it."""
        return self.requires_source_audio and not self.source_audio

    def replace_segment(self, index: int, segment: Segment) -> None:
        """Swap the segment at index, keeping the collection's ordering invariant."""
        current = self.segments[index]
        if (
            segment.start_time_seconds != current.start_time_seconds
            or segment.end_time_seconds != current.end_time_seconds
        ):
            raise ValueError("replace_segment() cannot move a segment in time")
        self.segments[index] = segment

    def set_segments(self, segments: Sequence[Segment]) -> None:
        ordered = sort_segments(segments)
        if not is_ordered(ordered):
            raise ValueError("Every segment must end after it starts")
        self.segments = ordered

    def counts(self) -> dict:
        """Number of segments per SegmentState value."""
        result = {state.value: 0 for state in SegmentState}
        for segment in self.segments:
            result[segment.state.value] += 1
        return result
