"""Error taxonomy for the ingestion, transcription and export pipeline.

WHY: Callers must tell apart failures that abort shared work (an upload,
a detection run, a project load) from failures that belong to a single
segment and are recorded on it. Typed exceptions make that split explicit.

RULES:
- TransferError, DetectionError and SerializationError propagate to the
  caller as one user-visible message
- ExtractionError and TranscriptionError are recovered into the failing
  segment's transcription_error field
- ImportParseError is raised only when a document yields no content at all
"""

from __future__ import annotations


class TranscriberError(Exception):
    """Base class for every error raised by this package."""


class TransferError(TranscriberError):
    """A chunk could not be stored or the upload could not be assembled."""


class DetectionError(TranscriberError):
    """The voice-activity detector failed or returned unusable boundaries."""


class ExtractionError(TranscriberError):
    """An audio slice could not be derived from the whole-file payload."""


class InvalidRangeError(ExtractionError, ValueError):
    """The requested time range violates 0 <= start < end <= duration."""


class TranscriptionError(TranscriberError):
    """The speech-to-text service failed for one segment."""


class ImportParseError(TranscriberError):
    """A transcript document produced no usable content."""


class SerializationError(TranscriberError):
    """A project document is malformed and cannot be loaded."""


class MissingAudioError(TranscriberError):
    """The source audio referenced by a project could not be located."""
