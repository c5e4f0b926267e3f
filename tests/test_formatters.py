"""Unit tests for the export formatters and timecode helpers.

WHY: Subtitle players and video editors reject files with malformed cue
timing, and a double space or a stray untranscribed cue is visible to
every reader of an export.

HOW: Each formatter renders the shared sample_segments fixture (done,
empty, done) and the full output is compared exactly.
"""

from __future__ import annotations

import pytest

from segment_transcriber.formatters import FORMATTERS
from segment_transcriber.formatters.base import BaseFormatter, exportable
from segment_transcriber.formatters.markdown import MarkdownFormatter
from segment_transcriber.formatters.plain_text import PlainTextFormatter
from segment_transcriber.formatters.srt import SRTFormatter
from segment_transcriber.formatters.timecodes import (
    markdown_timestamp,
    srt_timestamp,
    vtt_timestamp,
)
from segment_transcriber.formatters.webvtt import WebVTTFormatter


def _content(formatter, segments):
    outputs = formatter.format(segments)
    assert len(outputs) == 1
    return outputs[0].content


class TestTimecodes:

    def test_srt_reference_value(self):
        assert srt_timestamp(3725.4) == "01:02:05,400"

    def test_srt_truncates_milliseconds(self):
        assert srt_timestamp(1.9999) == "00:00:01,999"

    def test_vtt_reference_value(self):
        assert vtt_timestamp(65.125) == "00:01:05.125"

    def test_vtt_zero(self):
        assert vtt_timestamp(0) == "00:00:00.000"

    def test_hours_past_99_are_not_truncated(self):
        assert srt_timestamp(360000.0) == "100:00:00,000"

    @pytest.mark.parametrize("seconds, expected", [
        (0.5, "0:00.50"),
        (125.5, "2:05.50"),
        (7.25, "0:07.25"),
    ])
    def test_markdown(self, seconds, expected):
        assert markdown_timestamp(seconds) == expected


class TestExportable:

    def test_skips_empty_and_absent_keeping_positions(self, sample_segments, segment_factory):
        segments = sample_segments + [segment_factory(8.0, 9.0)]
        assert [pos for pos, _ in exportable(segments)] == [1, 3]


class TestPlainTextFormatter:

    def test_joins_with_single_space(self, sample_segments):
        assert _content(PlainTextFormatter(), sample_segments) == "Hello there. General Kenobi."

    def test_empty_between_is_skipped(self, segment_factory):
        segments = [
            segment_factory(0, 1, "a"),
            segment_factory(1, 2, ""),
            segment_factory(2, 3, "b"),
        ]
        assert _content(PlainTextFormatter(), segments) == "a b"

    def test_output_suffix(self, sample_segments):
        output = PlainTextFormatter().format(sample_segments)[0]
        assert output.suffix == ".txt"
        assert output.media_type == "text/plain"


class TestMarkdownFormatter:

    def test_headings_use_collection_position(self, sample_segments):
        assert _content(MarkdownFormatter(), sample_segments) == (
            "## Segment 1 (0:00.50-0:02.00)\n"
            "Hello there.\n"
            "\n"
            "## Segment 3 (0:05.00-0:07.25)\n"
            "General Kenobi.\n"
            "\n"
        )

    def test_output_suffix(self, sample_segments):
        assert MarkdownFormatter().format(sample_segments)[0].suffix == ".md"


class TestWebVTTFormatter:

    def test_full_document(self, sample_segments):
        assert _content(WebVTTFormatter(), sample_segments) == (
            "WEBVTT\n"
            "\n"
            "1\n"
            "00:00:00.500 --> 00:00:02.000\n"
            "Hello there.\n"
            "\n"
            "3\n"
            "00:00:05.000 --> 00:00:07.250\n"
            "General Kenobi.\n"
            "\n"
        )

    def test_header_only_when_nothing_transcribed(self, segment_factory):
        assert _content(WebVTTFormatter(), [segment_factory(0, 1)]) == "WEBVTT\n\n"


class TestSRTFormatter:

    def test_renumbers_exported_cues(self, sample_segments):
        assert _content(SRTFormatter(), sample_segments) == (
            "1\n"
            "00:00:00,500 --> 00:00:02,000\n"
            "Hello there.\n"
            "\n"
            "2\n"
            "00:00:05,000 --> 00:00:07,250\n"
            "General Kenobi.\n"
            "\n"
        )

    def test_empty_collection(self):
        assert _content(SRTFormatter(), []) == ""

    def test_output_suffix(self, sample_segments):
        output = SRTFormatter().format(sample_segments)[0]
        assert output.suffix == ".srt"


class TestRegistry:

    def test_keys(self):
        assert set(FORMATTERS) == {"text", "markdown", "webvtt", "srt"}

    def test_all_are_formatters(self):
        for cls in FORMATTERS.values():
            assert issubclass(cls, BaseFormatter)
            assert cls().name

    def test_suffixes_are_unique(self):
        suffixes = [cls.suffix for cls in FORMATTERS.values()]
        assert sorted(suffixes) == [".md", ".srt", ".txt", ".vtt"]
