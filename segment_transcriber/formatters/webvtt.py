"""WebVTT subtitle export."""

from __future__ import annotations

from typing import List

from segment_transcriber.formatters.base import BaseFormatter, IndexedSegment
from segment_transcriber.formatters.timecodes import vtt_timestamp


class WebVTTFormatter(BaseFormatter):
    """Renders a ``WEBVTT`` header followed by one cue per segment.

    RULES:
    - Cue identifier is the segment's 1-based collection position
    - Timing line: ``hh:mm:ss.mmm --> hh:mm:ss.mmm``
    - A blank line follows the header and every cue
    """

    suffix = ".vtt"
    media_type = "text/vtt"

    @property
    def name(self) -> str:
        return "WebVTT"

    def render(self, entries: List[IndexedSegment]) -> str:
        lines = ["WEBVTT", ""]
        for position, segment in entries:
            lines.append(str(position))
            lines.append("{} --> {}".format(
                vtt_timestamp(segment.start_time_seconds),
                vtt_timestamp(segment.end_time_seconds),
            ))
            lines.append(segment.transcription.strip())
            lines.append("")
        return "\n".join(lines) + "\n"
