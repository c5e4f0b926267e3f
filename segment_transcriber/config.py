"""Configuration constants, calibration values, and .env loading.

WHY: Chunk sizes, pacing, sample rates and the import heuristics are
tuning values, not logic. Keeping them as plain module-level constants
makes them easy to find and override without touching the pipeline.

HOW: python-dotenv loads the .env file on import. Constants are defined
as module-level values. Every default can be overridden through an
environment variable. The load_api_key() function gives a clear error
when the speech-to-text key is missing.

RULES:
- REFERENCE_SAMPLE_RATE is the rate that sample offsets are expressed in
- The import heuristics are calibration constants; keep them named and
  overridable rather than re-deriving them
- API key is loaded from .env via python-dotenv, never hardcoded
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


# ---------------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------------

REFERENCE_SAMPLE_RATE = _env_int("REFERENCE_SAMPLE_RATE", 16000)
"""Sample rate (Hz) that start_sample / end_sample are expressed in."""

SUPPORTED_AUDIO_FORMATS: set[str] = {
    ".wav", ".mp3", ".m4a", ".aac", ".flac", ".ogg",
}
"""Audio file extensions accepted for detection (lowercase, with dot)."""

FFMPEG_BIN = os.getenv("FFMPEG_BIN", "ffmpeg")

# ---------------------------------------------------------------------------
# Chunked transfer
# ---------------------------------------------------------------------------

CHUNK_SIZE_BYTES = _env_int("CHUNK_SIZE_BYTES", 1024 * 1024)

UPLOAD_FRACTION = _env_float("UPLOAD_FRACTION", 0.9)
"""Share of the progress bar used by the upload; the rest is for preparing playback."""

UPLOAD_DIR = Path(
    os.getenv("UPLOAD_DIR", os.path.join(tempfile.gettempdir(), "transcriber_audio"))
)

SESSION_TTL_SECONDS = _env_int("SESSION_TTL_SECONDS", 3600)

MAX_UPLOAD_CHUNKS = _env_int("MAX_UPLOAD_CHUNKS", 16384)
"""Upper bound on total_chunks for one upload (16 GiB at the default chunk size)."""

# ---------------------------------------------------------------------------
# Segmentation and transcription pacing
# ---------------------------------------------------------------------------

MERGE_GAP_S = _env_float("MERGE_GAP_S", 1.5)

PACING_INTERVAL_S = _env_float("PACING_INTERVAL_S", 0.5)

# ---------------------------------------------------------------------------
# Noscribe import heuristics
# ---------------------------------------------------------------------------

LAST_SEGMENT_WORDS_PER_SECOND = _env_float("LAST_SEGMENT_WORDS_PER_SECOND", 3.0)
LAST_SEGMENT_MIN_DURATION_S = _env_float("LAST_SEGMENT_MIN_DURATION_S", 2.0)
FALLBACK_CHARS_PER_SECOND = _env_float("FALLBACK_CHARS_PER_SECOND", 100.0)
FALLBACK_MIN_DURATION_S = _env_float("FALLBACK_MIN_DURATION_S", 3.0)

# ---------------------------------------------------------------------------
# Speech-to-text service
# ---------------------------------------------------------------------------

TRANSCRIBE_BASE_URL = os.getenv("TRANSCRIBE_BASE_URL", "https://api.openai.com/v1")
TRANSCRIBE_MODEL = os.getenv("TRANSCRIBE_MODEL", "whisper-1")
TRANSCRIBE_LANGUAGE = os.getenv("TRANSCRIBE_LANGUAGE", "").strip() or None


def load_api_key() -> str:
    """Load the speech-to-text API key from the environment.

    RULES:
    - Raises ValueError if the key is missing or empty
    - Never returns a default/placeholder value
    """
    key = os.getenv("TRANSCRIBE_API_KEY", "").strip()
    if not key:
        raise ValueError(
            "Speech-to-text API key not configured. "
            "Add TRANSCRIBE_API_KEY to the .env file in the app folder."
        )
    return key
