"""Shared test fixtures for the segment_transcriber test suite.

WHY: Most test modules need the same building blocks: a small valid WAV
recording, an ordered segment collection in mixed transcription states,
a project whose segments depend on source-audio extraction, and a
Noscribe document with known timestamps.

HOW: WAV bytes are generated with the standard library wave module so
the fixtures do not depend on the code under test. Everything else is a
plain dataclass instance.

RULES:
- All audio is 16-bit mono at 16 kHz
- The source recording is 10 seconds long
- The Noscribe sample has entries at 10 s, 40 s and 75 s
"""

from __future__ import annotations

import io
import struct
import wave
from typing import List

import pytest

from segment_transcriber.core.segments import Project, Segment

SAMPLE_RATE = 16000


def make_wav(duration_s: float, sample_rate: int = SAMPLE_RATE) -> bytes:
    """Build a mono 16-bit WAV whose sample values count upward (mod 2**15)."""
    count = int(duration_s * sample_rate)
    frames = struct.pack("<{}h".format(count), *(i % 32768 for i in range(count)))
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(frames)
    return buf.getvalue()


def wav_frame_count(payload: bytes) -> int:
    with wave.open(io.BytesIO(payload), "rb") as wf:
        return wf.getnframes()


def seg(start: float, end: float, text=None, audio=None) -> Segment:
    """Shorthand for a segment at the reference rate."""
    return Segment.from_times(start, end, sample_rate=SAMPLE_RATE, transcription=text, audio_slice=audio)


NOSCRIBE_HTML = """<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<meta name="audio_source" content="interview.mp3">
<title>interview</title>
</head>
<body>
<p><b>Transcript</b></p>
<p>S00: [00:00:10] Welcome to the show.</p>
<p>S01: [00:00:40] Thanks for having
   me here today.</p>
<p>S00: [00:01:15] Let us begin with the first question please</p>
</body>
</html>
"""


@pytest.fixture
def wav_10s() -> bytes:
    """A 10 second WAV recording."""
    return make_wav(10.0)


@pytest.fixture
def sample_segments() -> List[Segment]:
    """Three ordered segments: done, pending (empty), done."""
    return [
        seg(0.5, 2.0, "Hello there."),
        seg(2.5, 4.0, ""),
        seg(5.0, 7.25, "General Kenobi."),
    ]


@pytest.fixture
def detected_project() -> Project:
    """A project whose segments carry their own audio slices."""
    return Project(
        name="detected",
        source_filename="detected.wav",
        segments=[
            seg(0.0, 1.0, audio=make_wav(1.0)),
            seg(1.5, 2.5, audio=make_wav(1.0)),
            seg(3.0, 4.0, audio=make_wav(1.0)),
        ],
    )


@pytest.fixture
def imported_project(wav_10s) -> Project:
    """A project whose segments must be extracted from the source audio."""
    return Project(
        name="imported",
        source_filename="imported.wav",
        source_audio=wav_10s,
        segments=[
            seg(1.0, 3.0, "S00: first"),
            seg(3.0, 6.5, "S01: second"),
        ],
    )


@pytest.fixture
def noscribe_html() -> str:
    return NOSCRIBE_HTML


@pytest.fixture
def wav_factory():
    """make_wav(duration_s, sample_rate=16000) -> WAV bytes."""
    return make_wav


@pytest.fixture
def frame_counter():
    """wav_frame_count(payload) -> number of frames in a WAV payload."""
    return wav_frame_count


@pytest.fixture
def segment_factory():
    """seg(start, end, text=None, audio=None) -> Segment."""
    return seg
