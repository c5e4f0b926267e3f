"""Tests for project JSON serialization.

HOW: Documents are validated against the bundled project_schema.json with
jsonschema, then loaded back and compared field by field.
"""

from __future__ import annotations

import json

import jsonschema
import pytest

from segment_transcriber.core.segments import Project
from segment_transcriber.core.serializer import (
    SCHEMA_PATH,
    deserialize,
    load_project,
    project_to_dict,
    save_project,
    serialize,
)
from segment_transcriber.errors import SerializationError

PERSISTENT_FIELDS = (
    "start_sample",
    "end_sample",
    "start_time_seconds",
    "end_time_seconds",
    "transcription",
)


def _load_schema():
    with open(SCHEMA_PATH, encoding="utf-8") as fh:
        return json.load(fh)


class TestSerialize:

    def test_document_matches_schema(self, imported_project):
        jsonschema.validate(project_to_dict(imported_project), _load_schema())

    def test_audio_slice_only_written_when_present(self, detected_project, sample_segments):
        detected = project_to_dict(detected_project)
        assert all("audio_base64" in s for s in detected["segments"])
        plain = project_to_dict(Project(name="p", segments=sample_segments))
        assert not any("audio_base64" in s for s in plain["segments"])

    def test_transient_fields_never_written(self, sample_segments):
        segments = [sample_segments[0].begin_transcription(), sample_segments[2].fail("x")]
        document = project_to_dict(Project(name="p", segments=segments))
        jsonschema.validate(document, _load_schema())
        for item in document["segments"]:
            assert "is_transcribing" not in item
            assert "transcription_error" not in item


class TestRoundTrip:

    def test_preserves_persistent_fields(self, imported_project):
        imported_project.segments[0] = imported_project.segments[0].begin_transcription()
        imported_project.segments[1] = imported_project.segments[1].fail("boom")

        restored = deserialize(serialize(imported_project))

        assert restored.name == imported_project.name
        assert restored.source_filename == imported_project.source_filename
        assert restored.source_audio == imported_project.source_audio
        for before, after in zip(imported_project.segments, restored.segments):
            for field in PERSISTENT_FIELDS:
                assert getattr(after, field) == getattr(before, field)
            assert after.is_transcribing is False
            assert after.transcription_error is None

    def test_audio_slices_survive(self, detected_project):
        restored = deserialize(serialize(detected_project))
        assert [s.audio_slice for s in restored.segments] == [
            s.audio_slice for s in detected_project.segments
        ]

    def test_never_attempted_stays_none(self, segment_factory):
        project = Project(name="p", segments=[segment_factory(0, 1)])
        assert deserialize(serialize(project)).segments[0].transcription is None

    def test_file_round_trip(self, tmp_path, imported_project):
        path = save_project(imported_project, tmp_path / "p.json")
        assert load_project(path).segments == imported_project.segments


class TestDefaults:

    def test_missing_fields_default(self):
        project = deserialize(json.dumps({
            "segments": [{"start_time_seconds": 1.5, "end_time_seconds": 2.0}],
        }))
        segment = project.segments[0]
        assert project.name == ""
        assert project.source_filename == ""
        assert project.source_audio is None
        assert segment.start_sample == 0
        assert segment.end_sample == 0
        assert segment.transcription == ""

    def test_transient_fields_reset_from_document(self):
        project = deserialize(json.dumps({
            "name": "x",
            "segments": [{
                "start_time_seconds": 0,
                "end_time_seconds": 1,
                "transcription": "t",
                "is_transcribing": True,
                "transcription_error": "stale",
            }],
        }))
        assert project.segments[0].is_transcribing is False
        assert project.segments[0].transcription_error is None

    def test_out_of_order_segments_are_sorted(self):
        project = deserialize(json.dumps({
            "segments": [
                {"start_time_seconds": 5, "end_time_seconds": 6, "transcription": "b"},
                {"start_time_seconds": 1, "end_time_seconds": 2, "transcription": "a"},
            ],
        }))
        assert [s.transcription for s in project.segments] == ["a", "b"]


class TestMalformed:

    @pytest.mark.parametrize("document", [
        "not json",
        "[]",
        '{"segments": {}}',
        '{"segments": [42]}',
        '{"segments": [{"start_time_seconds": "soon"}]}',
        '{"segments": [{"start_time_seconds": true}]}',
        '{"source_audio": "***"}',
        '{"name": 7}',
    ])
    def test_raises_serialization_error(self, document):
        with pytest.raises(SerializationError):
            deserialize(document)

    def test_failed_load_leaves_current_project_untouched(self, imported_project):
        before = serialize(imported_project)
        with pytest.raises(SerializationError):
            deserialize("{broken")
        assert serialize(imported_project) == before

    def test_unreadable_file(self, tmp_path):
        with pytest.raises(SerializationError):
            load_project(tmp_path / "missing.json")

    @pytest.mark.parametrize("literal", ["Infinity", "-Infinity", "NaN", "1e400"])
    def test_non_finite_numbers_rejected(self, literal):
        for key in ("start_sample", "end_time_seconds"):
            document = '{"name": "x", "segments": [{"%s": %s}]}' % (key, literal)
            with pytest.raises(SerializationError):
                deserialize(document)

    def test_integer_too_large_for_float_rejected(self):
        document = '{"segments": [{"start_time_seconds": 1%s}]}' % ("0" * 400)
        with pytest.raises(SerializationError):
            deserialize(document)
