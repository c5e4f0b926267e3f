"""Boundary to the external voice-activity detector (VAD).

WHY: Turning raw audio into speech boundaries is done by an external model.
The rest of the pipeline only needs an ordered list of Segments, so this
module defines the detector interface, translates its rows into Segments,
and checks that what comes back honours the ordering invariants.

HOW: A SegmentDetector is any object with a detect(path, on_progress)
method returning row dicts {start_sample, end_sample, start_time_seconds,
end_time_seconds, audio_base64?}. run_detection() validates the file
format, calls the detector, reports ProgressEvents as status text, and
wraps every detector failure in DetectionError.

RULES:
- Unsupported extensions fail before the detector is called
- Detector order is preserved; out-of-order or empty rows are a DetectionError
- Optional merging of close segments happens after validation
- Any exception raised by the detector becomes a DetectionError
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol

from segment_transcriber.config import SUPPORTED_AUDIO_FORMATS
from segment_transcriber.core.segments import Segment, is_ordered, merge_close_segments
from segment_transcriber.errors import DetectionError

logger = logging.getLogger(__name__)


@dataclass
class ProgressEvent:
    """One progress notification emitted by the detector.

    RULES:
    - step: short human-readable stage name
    - progress: 0..100
    - details: optional extra text
    """

    step: str
    progress: float
    details: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ProgressEvent:
        return cls(
            step=str(data.get("step", "")),
            progress=float(data.get("progress", 0) or 0),
            details=data.get("details"),
        )

    def status_text(self) -> str:
        pct = max(0.0, min(100.0, self.progress))
        text = "{} ({:.0f}%)".format(self.step, pct)
        if self.details:
            text += " - {}".format(self.details)
        return text


ProgressCallback = Callable[[ProgressEvent], None]


class SegmentDetector(Protocol):
    """Interface of the external voice-activity detector."""

    def detect(
        self,
        path: Path,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[Dict[str, Any]]:
        ...


def validate_audio_path(path: Path) -> None:
    """Raise DetectionError for missing files and unsupported extensions."""
    if not path.is_file():
        raise DetectionError("File not found: {}".format(path))
    ext = path.suffix.lower()
    if ext not in SUPPORTED_AUDIO_FORMATS:
        raise DetectionError(
            "Unsupported audio format '{}'. Supported formats: {}".format(
                ext, ", ".join(sorted(SUPPORTED_AUDIO_FORMATS))
            )
        )


def segment_from_row(row: Dict[str, Any]) -> Segment:
    """Convert one detector row into a Segment.

    RULES:
    - start/end times are required; samples default to 0
    - audio_base64 (when present and non-empty) becomes audio_slice
    """
    try:
        start_s = float(row["start_time_seconds"])
        end_s = float(row["end_time_seconds"])
        audio_b64 = row.get("audio_base64") or ""
        audio = base64.b64decode(audio_b64, validate=True) if audio_b64 else None
        return Segment(
            start_sample=int(row.get("start_sample", 0) or 0),
            end_sample=int(row.get("end_sample", 0) or 0),
            start_time_seconds=start_s,
            end_time_seconds=end_s,
            audio_slice=audio,
        )
    except (KeyError, TypeError, ValueError, binascii.Error) as exc:
        raise DetectionError("Malformed detector row {!r}: {}".format(row, exc)) from exc


def run_detection(
    detector: SegmentDetector,
    path: Path,
    on_status: Optional[Callable[[str], None]] = None,
    merge_gap_s: Optional[float] = None,
) -> List[Segment]:
    """Run the detector on path and return validated, ordered Segments.

    Args:
        detector: The external voice-activity detector.
        path: Fully assembled audio file (never a partial upload).
        on_status: Optional callback receiving human-readable status lines.
        merge_gap_s: When set, merge neighbours closer than this many seconds.

    Returns:
        Segments in detector order.

    Raises:
        DetectionError: on unsupported input, detector failure, or rows that
            break the ordering invariants.
    """
    path = Path(path)
    validate_audio_path(path)

    def _forward(event: ProgressEvent) -> None:
        if on_status:
            on_status(event.status_text())

    try:
        rows = detector.detect(path, _forward)
    except DetectionError:
        raise
    except Exception as exc:
        logger.exception("Voice activity detection failed for %s", path)
        raise DetectionError("Error processing audio file: {}".format(exc)) from exc

    segments = [segment_from_row(row) for row in rows]
    if not is_ordered(segments):
        raise DetectionError(
            "Detector returned segments that are out of order or empty"
        )

    if merge_gap_s is not None:
        before = len(segments)
        segments = merge_close_segments(segments, merge_gap_s)
        logger.info("Merged %d detected segments into %d", before, len(segments))

    if on_status:
        on_status("Found {} speech segments".format(len(segments)))
    return segments
