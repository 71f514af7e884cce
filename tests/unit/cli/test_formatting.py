"""Tests for CLI job formatting helpers."""

import pytest

from lmq.cli.formatting import (
    DEFAULT_STATUS_COLOR,
    JOB_STATUS_COLORS,
    format_timestamp,
    get_status_color,
    truncate,
)
from lmq.db import JobStatus


class TestStatusColors:
    def test_every_status_has_a_color(self):
        assert set(JOB_STATUS_COLORS) == set(JobStatus)

    def test_failed_is_red(self):
        assert get_status_color(JobStatus.FAILED) == "red"

    def test_default_color(self):
        assert DEFAULT_STATUS_COLOR == "white"


class TestTruncate:
    @pytest.mark.parametrize("text", [None, ""])
    def test_empty_renders_dash(self, text):
        assert truncate(text, 10) == "-"

    def test_short_text_unchanged(self):
        assert truncate("queues", 10) == "queues"

    def test_long_text_cut_with_ellipsis(self):
        result = truncate("transcription failed: HTTP 500", 12)
        assert result == "transcrip..."
        assert len(result) == 12


class TestFormatTimestamp:
    def test_iso_timestamp(self):
        assert (
            format_timestamp("2026-03-01T12:34:56.789012+00:00")
            == "2026-03-01 12:34:56"
        )

    def test_missing(self):
        assert format_timestamp(None) == "-"
