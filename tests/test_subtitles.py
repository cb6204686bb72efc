"""Tests for timed-text to subtitle conversion."""

import pytest

from lecture_transcripts.models import SubtitleRecord
from lecture_transcripts.subtitles import (
    convert_cues,
    normalize_timestamp,
    parse_cues,
    render_subtitles,
    timestamp_to_millis,
)


class TestNormalizeTimestamp:

    @pytest.mark.parametrize("value,expected", [
        ("0:05.500", "00:00:05,500"),
        ("0:08", "00:00:08,000"),
        ("5", "00:00:05,000"),
        ("12:34.5", "00:12:34,500"),
        ("1:02:03.04", "01:02:03,040"),
        ("00:00:01.123456", "00:00:01,123"),
        ("00:00:05,500", "00:00:05,500"),
    ])
    def test_normalizes_variable_precision(self, value, expected):
        assert normalize_timestamp(value) == expected

    def test_normalizing_twice_changes_nothing(self):
        for value in ["0:05.5", "3", "1:00:00", "59:59.999"]:
            once = normalize_timestamp(value)
            assert normalize_timestamp(once) == once

    @pytest.mark.parametrize("value", ["", "abc", "1:2:3:4", "00:00:05.5x", "-1"])
    def test_rejects_malformed_values(self, value):
        with pytest.raises(ValueError):
            normalize_timestamp(value)

    def test_millis(self):
        assert timestamp_to_millis("01:02:03,040") == 3723040


class TestConvertCues:

    def test_single_short_cue(self):
        records = convert_cues("0:05.500 --> 0:08\nHi")

        assert records == [SubtitleRecord(1, "00:00:05,500", "00:00:08,000", "Hi")]

    def test_webvtt_document(self):
        payload = (
            "WEBVTT\n"
            "\n"
            "NOTE produced by the player\n"
            "\n"
            "intro-1\n"
            "00:01.000 --> 00:03.250 align:start position:10%\n"
            "Welcome to the course.\n"
            "\n"
            "00:03.250 --> 00:06.000\n"
            "First line\n"
            "second line\n"
        )

        records = convert_cues(payload)

        assert [r.index for r in records] == [1, 2]
        assert records[0].start == "00:00:01,000"
        assert records[0].end == "00:00:03,250"
        assert records[0].text == "Welcome to the course."
        assert records[1].text == "First line\nsecond line"

    def test_crlf_and_byte_order_mark(self):
        payload = "\ufeffWEBVTT\r\n\r\n00:01.000 --> 00:02.000\r\nHello\r\n"

        records = convert_cues(payload)

        assert len(records) == 1
        assert records[0].text == "Hello"

    def test_malformed_blocks_are_dropped_and_indices_stay_contiguous(self):
        payload = (
            "00:01.000 --> 00:02.000\nkept one\n"
            "\n"
            "just some text\n"
            "\n"
            "00:03.000 --> 00:04.000\n"
            "\n"
            "bad --> 00:05.000\nbroken timing\n"
            "\n"
            "00:06.000 --> 00:07.000\nkept two\n"
        )

        records = convert_cues(payload)

        assert [r.text for r in records] == ["kept one", "kept two"]
        assert [r.index for r in records] == [1, 2]

    def test_end_before_start_is_clamped(self):
        records = convert_cues("00:10.000 --> 00:09.000\nbackwards")

        assert records[0].start == "00:00:10,000"
        assert records[0].end == "00:00:10,000"

    def test_input_order_is_kept(self):
        payload = "00:05.000 --> 00:06.000\nlater\n\n00:01.000 --> 00:02.000\nearlier\n"

        records = convert_cues(payload)

        assert [r.text for r in records] == ["later", "earlier"]

    def test_empty_payload(self):
        assert convert_cues("") == []
        assert parse_cues("WEBVTT\n") == []


class TestRenderSubtitles:

    def test_blocks_separated_by_blank_line(self):
        records = [
            SubtitleRecord(1, "00:00:01,000", "00:00:02,000", "One"),
            SubtitleRecord(2, "00:00:02,000", "00:00:03,500", "Two"),
        ]

        assert render_subtitles(records) == (
            "1\n00:00:01,000 --> 00:00:02,000\nOne\n"
            "\n"
            "2\n00:00:02,000 --> 00:00:03,500\nTwo\n"
        )

    def test_rendered_output_converts_back_unchanged(self):
        records = convert_cues("0:01 --> 0:02.5\nOne\n\n0:03 --> 0:04\nTwo")

        assert convert_cues(render_subtitles(records)) == records
