"""Abstract base formatter and output container.

WHY: Every export format consumes the same ordered Segment collection but
produces different file content. This base class enforces a consistent
interface so the CLI and API layers can work with any formatter generically.

HOW: BaseFormatter is an ABC with two requirements: a ``name`` property
and a ``render()`` method. ``format()`` filters out untranscribed
segments and wraps the rendered text in a FormatterOutput, a plain
dataclass bundling a file suffix with its content and MIME type.

RULES:
- Subclasses MUST implement ``name`` (human-readable) and ``render()``
- Segments whose transcription is empty or absent are never exported
- ``render()`` receives (original 1-based index, segment) pairs so a
  format can number cues by collection position or renumber them
- ``suffix`` includes the dot, e.g. ``".vtt"``; the caller prepends the
  project name
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from segment_transcriber.core.segments import Segment

IndexedSegment = Tuple[int, Segment]


@dataclass
class FormatterOutput:
    """One output file produced by a formatter.

    Attributes:
        suffix: File suffix appended to the project name,
                e.g. ``".srt"`` → ``"interview.srt"``.
        content: The file content.
        media_type: MIME type for the content, e.g. ``"text/vtt"``.
    """

    suffix: str
    content: str
    media_type: str


def exportable(segments: Sequence[Segment]) -> List[IndexedSegment]:
    """Pair each transcribed segment with its 1-based collection position."""
    return [
        (position, segment)
        for position, segment in enumerate(segments, start=1)
        if segment.has_text
    ]


class BaseFormatter(ABC):
    """Abstract base for all export formatters.

    To add a new export format:
    1. Create a new file in formatters/
    2. Subclass BaseFormatter
    3. Implement render(), name, suffix and media_type
    4. Register in FORMATTERS dict in formatters/__init__.py
    """

    suffix: str = ".txt"
    media_type: str = "text/plain"

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable format name, e.g. 'WebVTT'."""

    @abstractmethod
    def render(self, entries: List[IndexedSegment]) -> str:
        """Render already-filtered segments into file content."""

    def format(self, segments: Sequence[Segment]) -> List[FormatterOutput]:
        """Convert an ordered Segment collection into output files.

        Args:
            segments: The project's segments in collection order.

        Returns:
            A single-element list containing the rendered file.
        """
        return [
            FormatterOutput(
                suffix=self.suffix,
                content=self.render(exportable(segments)),
                media_type=self.media_type,
            )
        ]
