"""Plain text export: every transcription on one line, single-space separated."""

from __future__ import annotations

from typing import List

from segment_transcriber.formatters.base import BaseFormatter, IndexedSegment


class PlainTextFormatter(BaseFormatter):
    """Joins stripped transcriptions with a single space.

    RULES:
    - Untranscribed segments are skipped, never leaving a double space
    - Output suffix: ".txt"
    """

    suffix = ".txt"
    media_type = "text/plain"

    @property
    def name(self) -> str:
        return "Plain Text"

    def render(self, entries: List[IndexedSegment]) -> str:
        return " ".join(segment.transcription.strip() for _, segment in entries)
