"""Markdown export with one heading per segment."""

from __future__ import annotations

from typing import List

from segment_transcriber.formatters.base import BaseFormatter, IndexedSegment
from segment_transcriber.formatters.timecodes import markdown_timestamp


class MarkdownFormatter(BaseFormatter):
    """Renders ``## Segment N (m:ss.ff-m:ss.ff)`` followed by the text.

    RULES:
    - N is the segment's 1-based position in the whole collection, so a
      skipped segment leaves a gap in the numbering
    - Each block ends with a blank line
    """

    suffix = ".md"
    media_type = "text/markdown"

    @property
    def name(self) -> str:
        return "Markdown"

    def render(self, entries: List[IndexedSegment]) -> str:
        blocks = []
        for position, segment in entries:
            blocks.append(
                "## Segment {} ({}-{})\n{}\n\n".format(
                    position,
                    markdown_timestamp(segment.start_time_seconds),
                    markdown_timestamp(segment.end_time_seconds),
                    segment.transcription.strip(),
                )
            )
        return "".join(blocks)
