"""Tests for audio ingestion: upload, then detection, then a Project."""

from __future__ import annotations

import asyncio
import threading
from unittest.mock import MagicMock

import pytest

from segment_transcriber.errors import DetectionError, TransferError
from segment_transcriber.transfer.chunked import ChunkedUploader, LocalChunkTransport
from segment_transcriber.transfer.sessions import UploadSessionStore
from segment_transcriber.workflow import ingest_audio_file, playback_progress


class AssembledOnlyDetector:
    """Records the path it saw and checks the file is complete."""

    def __init__(self, expected: bytes):
        self.expected = expected
        self.seen = []

    def detect(self, path, on_progress=None):
        self.seen.append(path)
        assert path.read_bytes() == self.expected
        return [
            {"start_time_seconds": 0.0, "end_time_seconds": 1.0},
            {"start_time_seconds": 1.5, "end_time_seconds": 2.0},
            {"start_time_seconds": 6.0, "end_time_seconds": 7.0},
        ]


@pytest.fixture
def recording(tmp_path, wav_factory):
    path = tmp_path / "meeting.wav"
    path.write_bytes(wav_factory(8.0))
    return path


def _uploader(tmp_path, progress):
    store = UploadSessionStore(upload_dir=tmp_path / "assembled")
    return ChunkedUploader(
        LocalChunkTransport(store),
        chunk_size=64 * 1024,
        upload_fraction=0.9,
        on_progress=progress.append,
    )


class TestIngest:

    def test_detects_on_fully_assembled_file(self, tmp_path, recording):
        progress = []
        detector = AssembledOnlyDetector(recording.read_bytes())

        project = asyncio.run(ingest_audio_file(
            recording, detector, uploader=_uploader(tmp_path, progress), merge_gap_s=None,
        ))

        assert project.name == "meeting"
        assert project.source_filename == "meeting.wav"
        assert project.source_audio == recording.read_bytes()
        assert len(project.segments) == 3
        assert detector.seen[0] != recording
        assert not detector.seen[0].exists()

    def test_progress_reaches_one_after_upload_share(self, tmp_path, recording):
        progress = []
        detector = AssembledOnlyDetector(recording.read_bytes())
        asyncio.run(ingest_audio_file(
            recording, detector, uploader=_uploader(tmp_path, progress),
            on_progress=progress.append,
        ))
        assert progress == sorted(progress)
        assert max(p for p in progress if p <= 0.9) == pytest.approx(0.9)
        assert progress[-1] == 1.0

    def test_merges_close_segments_by_default(self, tmp_path, recording):
        detector = AssembledOnlyDetector(recording.read_bytes())
        project = asyncio.run(ingest_audio_file(
            recording, detector, uploader=_uploader(tmp_path, []),
        ))
        assert [(s.start_time_seconds, s.end_time_seconds) for s in project.segments] == [
            (0.0, 2.0), (6.0, 7.0),
        ]

    def test_keep_upload(self, tmp_path, recording):
        detector = AssembledOnlyDetector(recording.read_bytes())
        asyncio.run(ingest_audio_file(
            recording, detector, uploader=_uploader(tmp_path, []), keep_upload=True,
        ))
        assert detector.seen[0].exists()

    def test_detection_error_propagates(self, tmp_path, recording):
        detector = MagicMock()
        detector.detect.side_effect = RuntimeError("vad failed")
        with pytest.raises(DetectionError):
            asyncio.run(ingest_audio_file(
                recording, detector, uploader=_uploader(tmp_path, []),
            ))

    def test_transfer_error_propagates_before_detection(self, recording):
        uploader = MagicMock()

        async def fail(path):
            raise TransferError("chunk 3 failed")

        uploader.upload_file = fail
        detector = MagicMock()
        with pytest.raises(TransferError):
            asyncio.run(ingest_audio_file(recording, detector, uploader=uploader))
        detector.detect.assert_not_called()

    def test_status_messages(self, tmp_path, recording):
        messages = []
        detector = AssembledOnlyDetector(recording.read_bytes())
        asyncio.run(ingest_audio_file(
            recording, detector, uploader=_uploader(tmp_path, []), on_status=messages.append,
        ))
        assert messages[0] == "Uploading meeting.wav..."
        assert "Found 2 speech segments" in messages
        assert messages[-1] == "Ready: 2 segments"


class TestPlaybackProgress:

    def test_maps_into_remaining_share(self):
        assert playback_progress(0.0, 0.9) == pytest.approx(0.9)
        assert playback_progress(0.5, 0.9) == pytest.approx(0.95)
        assert playback_progress(1.0, 0.9) == pytest.approx(1.0)


class LoopSignalDetector:
    """Blocks until a task on the event loop signals, recording whether it did."""

    def __init__(self):
        self.released = threading.Event()
        self.saw_release = None

    def detect(self, path, on_progress=None):
        self.saw_release = self.released.wait(timeout=2.0)
        return [{"start_time_seconds": 0.0, "end_time_seconds": 1.0}]


class TestDetectionOffLoop:

    def test_other_tasks_run_during_detection(self, tmp_path, recording):
        detector = LoopSignalDetector()

        async def scenario():
            async def heartbeat():
                await asyncio.sleep(0.01)
                detector.released.set()

            beat = asyncio.create_task(heartbeat())
            project = await ingest_audio_file(
                recording, detector, uploader=_uploader(tmp_path, []), merge_gap_s=None,
            )
            await beat
            return project

        project = asyncio.run(scenario())

        assert detector.saw_release is True
        assert len(project.segments) == 1
