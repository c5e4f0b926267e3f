"""Export formatter registry: pluggable format hub.

WHY: The CLI and API layers need a single lookup to find the right
formatter by name. A central dict makes it trivial to add new formats:
create the formatter class, import it here, add one line.

HOW: FORMATTERS maps string keys to formatter *classes* (not instances).
Callers instantiate as needed: ``formatter = FORMATTERS["srt"]()``.

RULES:
- Keys are short lowercase identifiers (used in CLI flags and API paths)
- Values are BaseFormatter subclasses (not instances)
- Every formatter listed here must be importable without side effects
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from segment_transcriber.formatters.markdown import MarkdownFormatter
from segment_transcriber.formatters.plain_text import PlainTextFormatter
from segment_transcriber.formatters.srt import SRTFormatter
from segment_transcriber.formatters.webvtt import WebVTTFormatter

if TYPE_CHECKING:
    from segment_transcriber.formatters.base import BaseFormatter

FORMATTERS: dict[str, type[BaseFormatter]] = {
    "text": PlainTextFormatter,
    "markdown": MarkdownFormatter,
    "webvtt": WebVTTFormatter,
    "srt": SRTFormatter,
}
