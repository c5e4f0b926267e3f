"""SubRip (SRT) subtitle export.

WHY: SRT is the lowest common denominator for subtitle import in video
editors and players, several of which reject files whose cue numbers do
not run 1..N without gaps.

RULES:
- Cues are renumbered 1..N over exported segments only
- Timing line: ``hh:mm:ss,mmm --> hh:mm:ss,mmm`` (comma separator)
- Milliseconds are truncated, never rounded
- Each cue ends with a blank line
"""

from __future__ import annotations

from typing import List

from segment_transcriber.formatters.base import BaseFormatter, IndexedSegment
from segment_transcriber.formatters.timecodes import srt_timestamp


class SRTFormatter(BaseFormatter):
    """Formatter that produces a SubRip subtitle file."""

    suffix = ".srt"
    media_type = "application/x-subrip"

    @property
    def name(self) -> str:
        return "SubRip (SRT)"

    def render(self, entries: List[IndexedSegment]) -> str:
        cues = []
        for number, (_, segment) in enumerate(entries, start=1):
            cues.append("{}\n{} --> {}\n{}\n".format(
                number,
                srt_timestamp(segment.start_time_seconds),
                srt_timestamp(segment.end_time_seconds),
                segment.transcription.strip(),
            ))
        return "\n".join(cues) + ("\n" if cues else "")
