"""WAV encoding, decoding and base64 payload helpers.

WHY: Segments carry small playable audio slices and projects carry the
whole source file, both as encoded payloads that must survive JSON and
HTTP unchanged. PCM WAV is the normalized container every slice ends up in.

HOW: The standard library wave module reads and writes RIFF/WAVE data in
memory. Payloads travel as base64 text where a transport needs text.

RULES:
- encode_wav() writes little-endian PCM; defaults are 16-bit mono 16 kHz
- decode_wav() returns raw interleaved PCM frames plus their parameters
- is_wav() sniffs the RIFF/WAVE header, never the file extension
"""

from __future__ import annotations

import base64
import binascii
import io
import wave
from dataclasses import dataclass
from pathlib import Path

from segment_transcriber.config import REFERENCE_SAMPLE_RATE
from segment_transcriber.errors import ExtractionError


@dataclass
class PcmAudio:
    """Decoded PCM frames and the parameters needed to re-encode them."""

    frames: bytes
    sample_rate: int
    channels: int
    sample_width: int

    @property
    def frame_size(self) -> int:
        return self.channels * self.sample_width

    @property
    def frame_count(self) -> int:
        return len(self.frames) // self.frame_size if self.frame_size else 0

    @property
    def duration_s(self) -> float:
        return self.frame_count / self.sample_rate if self.sample_rate else 0.0


def is_wav(payload: bytes) -> bool:
    return len(payload) >= 12 and payload[:4] == b"RIFF" and payload[8:12] == b"WAVE"


def encode_wav(
    frames: bytes,
    sample_rate: int = REFERENCE_SAMPLE_RATE,
    channels: int = 1,
    sample_width: int = 2,
) -> bytes:
    """Wrap raw PCM frames in a WAV container."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(frames)
    return buf.getvalue()


def decode_wav(payload: bytes) -> PcmAudio:
    """Read every frame of a WAV payload.

    Raises:
        ExtractionError: if the payload is not a readable PCM WAV.
    """
    try:
        with wave.open(io.BytesIO(payload), "rb") as wf:
            return PcmAudio(
                frames=wf.readframes(wf.getnframes()),
                sample_rate=wf.getframerate(),
                channels=wf.getnchannels(),
                sample_width=wf.getsampwidth(),
            )
    except (wave.Error, EOFError) as exc:
        raise ExtractionError("Corrupt WAV payload: {}".format(exc)) from exc


def to_base64(payload: bytes) -> str:
    return base64.b64encode(payload).decode("ascii")


def from_base64(text: str) -> bytes:
    """Decode base64 text; raises ValueError on malformed input."""
    try:
        return base64.b64decode(text, validate=True)
    except binascii.Error as exc:
        raise ValueError("Invalid base64 payload: {}".format(exc)) from exc


def payload_to_encoded_audio(path: str | Path) -> str:
    """Read a whole audio file and return it as a base64 payload."""
    return to_base64(Path(path).read_bytes())
