"""Segment Transcriber: audio ingestion, segmentation and transcript hub.

WHY: Long recordings are easier to transcribe, correct and subtitle when
they are split into speech segments that each carry their own
transcription state. This package moves audio in (chunked upload or a
Noscribe transcript import), drives per-segment speech-to-text, and
renders the result as text, Markdown, WebVTT, SubRip or a JSON project.

HOW: Four stages: ingest (transfer, importers), segment (core, detection
boundary), transcribe (pipeline + api client), output (formatters and the
project serializer). Each stage is independently testable.

RULES:
- Segments are always ordered ascending by start time
- One segment's failure never aborts the batch it belongs to
- All formatters consume the same Segment sequence
"""

__version__ = "0.1.0"
