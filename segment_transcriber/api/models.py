"""Speech-to-text response dataclasses.

WHY: The OpenAI-compatible transcription endpoint answers with a JSON
object whose only guaranteed field is "text". A typed dataclass keeps the
parsing in one place.

RULES:
- text defaults to "" when the service omits it
- language and duration are optional extras some services return
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class TranscriptionResponse:
    """Parsed body of POST /audio/transcriptions."""

    text: str
    language: str | None = None
    duration: float | None = None

    @classmethod
    def from_dict(cls, data: dict) -> TranscriptionResponse:
        duration = data.get("duration")
        return cls(
            text=str(data.get("text") or ""),
            language=data.get("language"),
            duration=float(duration) if duration is not None else None,
        )
