"""Tests for the voice-activity detector boundary (run_detection)."""

from __future__ import annotations

import base64
from unittest.mock import MagicMock

import pytest

from segment_transcriber.core.detection import (
    ProgressEvent,
    run_detection,
    segment_from_row,
)
from segment_transcriber.errors import DetectionError


def _row(start, end, audio=None):
    row = {
        "start_sample": int(start * 16000),
        "end_sample": int(end * 16000),
        "start_time_seconds": start,
        "end_time_seconds": end,
    }
    if audio is not None:
        row["audio_base64"] = base64.b64encode(audio).decode("ascii")
    return row


class FakeDetector:
    def __init__(self, rows, events=()):
        self.rows = rows
        self.events = events
        self.calls = []

    def detect(self, path, on_progress=None):
        self.calls.append(path)
        for event in self.events:
            if on_progress:
                on_progress(ProgressEvent.from_dict(event))
        return self.rows


@pytest.fixture
def audio_file(tmp_path, wav_factory):
    path = tmp_path / "talk.wav"
    path.write_bytes(wav_factory(1.0))
    return path


class TestProgressEvent:

    def test_status_text_with_details(self):
        event = ProgressEvent.from_dict({"step": "Detecting", "progress": 42.4, "details": "chunk 3"})
        assert event.status_text() == "Detecting (42%) - chunk 3"

    def test_status_text_clamps(self):
        assert ProgressEvent("Done", 140).status_text() == "Done (100%)"


class TestSegmentFromRow:

    def test_audio_base64_becomes_slice(self, wav_factory):
        audio = wav_factory(0.5)
        segment = segment_from_row(_row(0.0, 0.5, audio))
        assert segment.audio_slice == audio
        assert segment.transcription is None

    def test_missing_time_is_detection_error(self):
        with pytest.raises(DetectionError):
            segment_from_row({"start_sample": 0})

    def test_bad_base64_is_detection_error(self):
        row = _row(0.0, 1.0)
        row["audio_base64"] = "%%%"
        with pytest.raises(DetectionError):
            segment_from_row(row)


class TestRunDetection:

    def test_preserves_detector_order(self, audio_file):
        detector = FakeDetector([_row(0.0, 1.0), _row(3.0, 4.0), _row(6.0, 7.5)])
        segments = run_detection(detector, audio_file)
        assert [s.start_time_seconds for s in segments] == [0.0, 3.0, 6.0]
        assert detector.calls == [audio_file]

    def test_reports_progress_and_summary(self, audio_file):
        detector = FakeDetector(
            [_row(0.0, 1.0)],
            events=[{"step": "Loading model", "progress": 10}],
        )
        on_status = MagicMock()
        run_detection(detector, audio_file, on_status=on_status)
        messages = [c.args[0] for c in on_status.call_args_list]
        assert messages == ["Loading model (10%)", "Found 1 speech segments"]

    def test_merges_when_gap_given(self, audio_file):
        detector = FakeDetector([_row(0.0, 1.0), _row(2.0, 3.0), _row(9.0, 10.0)])
        segments = run_detection(detector, audio_file, merge_gap_s=1.5)
        assert [(s.start_time_seconds, s.end_time_seconds) for s in segments] == [
            (0.0, 3.0), (9.0, 10.0),
        ]

    def test_out_of_order_rows_rejected(self, audio_file):
        detector = FakeDetector([_row(3.0, 4.0), _row(0.0, 1.0)])
        with pytest.raises(DetectionError):
            run_detection(detector, audio_file)

    def test_detector_exception_wrapped(self, audio_file):
        detector = MagicMock()
        detector.detect.side_effect = RuntimeError("model crashed")
        with pytest.raises(DetectionError, match="model crashed"):
            run_detection(detector, audio_file)

    def test_unsupported_extension_rejected_before_detector(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello")
        detector = MagicMock()
        with pytest.raises(DetectionError, match="Unsupported audio format"):
            run_detection(detector, path)
        detector.detect.assert_not_called()

    def test_missing_file(self, tmp_path):
        with pytest.raises(DetectionError, match="File not found"):
            run_detection(MagicMock(), tmp_path / "gone.wav")
