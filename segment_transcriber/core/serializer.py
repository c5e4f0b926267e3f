"""JSON project documents: serialize and deserialize a Project.

WHY: Users save an editing session and reopen it later, possibly with an
older version of the tool. The document must round-trip timing and text
exactly, carry the whole-file audio so extraction still works, and load
older documents that embedded per-segment audio.

HOW: serialize() builds a plain dict (binary payloads as base64) and
dumps it with json. deserialize() parses into a brand-new Project, so a
failed load never touches the caller's current project. Missing numeric
fields default to 0, missing text fields to "", and transient fields
are always reset.

RULES:
- Document keys: version, name, source_filename, source_audio, segments
- Segment keys: start_sample, end_sample, start_time_seconds,
  end_time_seconds, transcription, audio_base64 (only when present)
- is_transcribing and transcription_error are never written and always
  reset on load
- Any structural problem raises SerializationError
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Optional

from segment_transcriber.core.segments import Project, Segment, is_ordered, sort_segments
from segment_transcriber.errors import SerializationError

logger = logging.getLogger(__name__)

DOCUMENT_VERSION = 1

SCHEMA_PATH = Path(__file__).resolve().parent / "project_schema.json"


def _b64encode(data: Optional[bytes]) -> Optional[str]:
    if not data:
        return None
    return base64.b64encode(data).decode("ascii")


def _b64decode(value: Any, what: str) -> Optional[bytes]:
    if value in (None, ""):
        return None
    if not isinstance(value, str):
        raise SerializationError("{} must be a base64 string".format(what))
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise SerializationError("{} is not valid base64: {}".format(what, exc)) from exc


def _number(data: Dict[str, Any], key: str, kind: type, index: int) -> Any:
    value = data.get(key)
    if value is None:
        return kind(0)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SerializationError(
            "Segment {}: '{}' must be a number, got {!r}".format(index, key, value)
        )
    if isinstance(value, float) and not math.isfinite(value):
        raise SerializationError(
            "Segment {}: '{}' must be finite, got {!r}".format(index, key, value)
        )
    try:
        return kind(value)
    except OverflowError as exc:
        raise SerializationError(
            "Segment {}: '{}' is out of range".format(index, key)
        ) from exc


def _text(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise SerializationError("'{}' must be a string, got {!r}".format(key, value))
    return value


def segment_to_dict(segment: Segment) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "start_sample": segment.start_sample,
        "end_sample": segment.end_sample,
        "start_time_seconds": segment.start_time_seconds,
        "end_time_seconds": segment.end_time_seconds,
        "transcription": segment.transcription,
    }
    if segment.audio_slice:
        data["audio_base64"] = _b64encode(segment.audio_slice)
    return data


def segment_from_dict(data: Any, index: int = 0) -> Segment:
    if not isinstance(data, dict):
        raise SerializationError("Segment {} must be an object".format(index))
    # Absent key defaults to ""; an explicit null round-trips as "never attempted".
    transcription = data.get("transcription", "")
    if transcription is not None and not isinstance(transcription, str):
        raise SerializationError("Segment {}: 'transcription' must be a string".format(index))
    return Segment(
        start_sample=_number(data, "start_sample", int, index),
        end_sample=_number(data, "end_sample", int, index),
        start_time_seconds=_number(data, "start_time_seconds", float, index),
        end_time_seconds=_number(data, "end_time_seconds", float, index),
        audio_slice=_b64decode(data.get("audio_base64"), "Segment {} audio".format(index)),
        transcription=transcription,
        transcription_error=None,
        is_transcribing=False,
    )


def project_to_dict(project: Project) -> Dict[str, Any]:
    return {
        "version": DOCUMENT_VERSION,
        "name": project.name,
        "source_filename": project.source_filename,
        "source_audio": _b64encode(project.source_audio),
        "segments": [segment_to_dict(s) for s in project.segments],
    }


def project_from_dict(data: Any) -> Project:
    if not isinstance(data, dict):
        raise SerializationError("Project document must be a JSON object")

    raw_segments = data.get("segments")
    if raw_segments is None:
        raw_segments = []
    if not isinstance(raw_segments, list):
        raise SerializationError("'segments' must be a list")

    segments: List[Segment] = [
        segment_from_dict(item, index) for index, item in enumerate(raw_segments)
    ]
    if not is_ordered(segments):
        logger.warning("Project document has segments out of order; sorting by start time")
        segments = sort_segments(segments)

    return Project(
        name=_text(data, "name"),
        source_filename=_text(data, "source_filename"),
        source_audio=_b64decode(data.get("source_audio"), "Source audio"),
        segments=segments,
    )


def serialize(project: Project) -> str:
    """Render a Project as a JSON document string."""
    return json.dumps(project_to_dict(project), ensure_ascii=False, indent=2)


def deserialize(document: str | bytes) -> Project:
    """Parse a JSON document into a new Project.

    Raises:
        SerializationError: if the document is not valid JSON or has the
            wrong structure. The caller's current project is never touched.
    """
    try:
        data = json.loads(document)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise SerializationError("Project file is not valid JSON: {}".format(exc)) from exc
    return project_from_dict(data)


def save_project(project: Project, path: str | Path) -> Path:
    path = Path(path)
    path.write_text(serialize(project), encoding="utf-8")
    logger.info("Saved project %s with %d segments to %s", project.name, len(project.segments), path)
    return path


def load_project(path: str | Path) -> Project:
    path = Path(path)
    try:
        document = path.read_bytes()
    except OSError as exc:
        raise SerializationError("Cannot read project file {}: {}".format(path, exc)) from exc
    return deserialize(document)
