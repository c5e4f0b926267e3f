"""Tests for WAV helpers and the segment audio extractor."""

from __future__ import annotations

import struct
from pathlib import Path
from unittest.mock import patch

import pytest

from segment_transcriber.audio.extractor import SegmentAudioExtractor, check_range
from segment_transcriber.audio.wav import (
    decode_wav,
    encode_wav,
    from_base64,
    is_wav,
    payload_to_encoded_audio,
    to_base64,
)
from segment_transcriber.errors import ExtractionError, InvalidRangeError


class TestWavHelpers:

    def test_encode_is_16k_mono_16bit(self):
        payload = encode_wav(b"\x00\x00" * 1600)
        audio = decode_wav(payload)
        assert is_wav(payload)
        assert audio.sample_rate == 16000
        assert audio.channels == 1
        assert audio.sample_width == 2
        assert audio.duration_s == pytest.approx(0.1)

    def test_decode_garbage_raises(self):
        with pytest.raises(ExtractionError):
            decode_wav(b"RIFF\x00\x00\x00\x00WAVEjunk")

    def test_payload_to_encoded_audio(self, tmp_path, wav_factory):
        payload = wav_factory(0.2)
        path = tmp_path / "a.wav"
        path.write_bytes(payload)
        assert from_base64(payload_to_encoded_audio(path)) == payload

    def test_from_base64_rejects_garbage(self):
        with pytest.raises(ValueError):
            from_base64("not base64!!")

    def test_to_base64_is_ascii(self):
        assert to_base64(b"\x00\xff") == "AP8="


class TestCheckRange:

    def test_end_before_start(self):
        with pytest.raises(InvalidRangeError):
            check_range(5, 2)

    def test_equal_bounds(self):
        with pytest.raises(InvalidRangeError):
            check_range(2, 2)

    def test_negative_start(self):
        with pytest.raises(InvalidRangeError):
            check_range(-0.1, 2)

    def test_nan(self):
        with pytest.raises(InvalidRangeError):
            check_range(float("nan"), 2)

    def test_valid(self):
        check_range(0, 0.001)


class TestExtract:

    def test_sample_accurate_slice(self, wav_10s, frame_counter):
        slice_ = SegmentAudioExtractor().extract(wav_10s, 1.0, 3.5)
        assert frame_counter(slice_) == 40000

    def test_slice_content_matches_source(self, wav_10s):
        source = decode_wav(wav_10s)
        sliced = decode_wav(SegmentAudioExtractor().extract(wav_10s, 2.0, 2.5))
        assert sliced.frames == source.frames[2 * 32000:int(2.5 * 32000)]

    def test_end_before_start_is_precondition_error(self, wav_10s):
        with pytest.raises(InvalidRangeError):
            SegmentAudioExtractor().extract(wav_10s, 5, 2)

    def test_range_error_is_an_extraction_error(self, wav_10s):
        with pytest.raises(ExtractionError):
            SegmentAudioExtractor().extract(wav_10s, 5, 2)

    def test_end_past_duration_is_clamped(self, wav_10s, frame_counter):
        slice_ = SegmentAudioExtractor().extract(wav_10s, 9.0, 42.0)
        assert frame_counter(slice_) == 16000

    def test_start_past_duration(self, wav_10s):
        with pytest.raises(InvalidRangeError):
            SegmentAudioExtractor().extract(wav_10s, 10.0, 11.0)

    def test_empty_payload(self):
        with pytest.raises(ExtractionError):
            SegmentAudioExtractor().extract(b"", 0, 1)

    def test_corrupt_non_wav_payload(self):
        extractor = SegmentAudioExtractor(ffmpeg_bin="ffmpeg-binary-that-does-not-exist")
        with pytest.raises(ExtractionError):
            extractor.extract(b"definitely not audio", 0, 1)

    def test_duration(self, wav_10s):
        assert SegmentAudioExtractor().duration(wav_10s) == pytest.approx(10.0)

    def test_decode_is_cached_per_payload(self, wav_10s):
        extractor = SegmentAudioExtractor()
        assert extractor.decode(wav_10s) is extractor.decode(wav_10s)


def _float_wav(seconds: float, rate: int = 44100) -> bytes:
    """32-bit IEEE float mono WAV (format tag 3), which the wave module cannot read."""
    frames = struct.pack("<f", 0.25) * int(seconds * rate)
    fmt = struct.pack("<HHIIHH", 3, 1, rate, rate * 4, 4, 32)
    body = (
        b"WAVE"
        + b"fmt " + struct.pack("<I", len(fmt)) + fmt
        + b"data" + struct.pack("<I", len(frames)) + frames
    )
    return b"RIFF" + struct.pack("<I", len(body)) + body


class FakeFfmpeg:
    """Stands in for subprocess.run: writes 16-bit PCM of the given length to the output path."""

    def __init__(self, seconds: float):
        self.seconds = seconds
        self.commands = []

    def __call__(self, cmd, **kwargs):
        self.commands.append(cmd)
        Path(cmd[-1]).write_bytes(encode_wav(b"\x00\x00" * int(self.seconds * 16000)))


class TestFloatWav:

    def test_float_wav_is_decoded_with_ffmpeg(self, frame_counter):
        payload = _float_wav(2.0)
        with pytest.raises(ExtractionError):
            decode_wav(payload)

        ffmpeg = FakeFfmpeg(2.0)
        with patch("segment_transcriber.audio.extractor.subprocess.run", side_effect=ffmpeg):
            slice_ = SegmentAudioExtractor().extract(payload, 0.5, 1.0)

        assert len(ffmpeg.commands) == 1
        assert "-i" in ffmpeg.commands[0]
        assert frame_counter(slice_) == 8000
        assert decode_wav(slice_).sample_rate == 16000

    def test_pcm_wav_never_calls_ffmpeg(self, wav_10s):
        with patch("segment_transcriber.audio.extractor.subprocess.run") as run:
            SegmentAudioExtractor().extract(wav_10s, 0.0, 1.0)
        run.assert_not_called()

    def test_fallback_failure_keeps_wav_error(self):
        extractor = SegmentAudioExtractor(ffmpeg_bin="ffmpeg-binary-that-does-not-exist")
        with pytest.raises(ExtractionError, match="unknown format"):
            extractor.extract(_float_wav(1.0), 0.0, 0.5)
