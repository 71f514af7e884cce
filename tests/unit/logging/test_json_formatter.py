"""Unit tests for JSONFormatter."""

import json
import logging
import sys

from lmq.logging import JobContextFilter, JSONFormatter, job_context


def _make_record(msg: str = "Stored summary (%d chars)", args=(42,), **extra):
    record = logging.LogRecord(
        name="lmq.jobs.worker",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=args,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_basic_fields(self) -> None:
        entry = json.loads(JSONFormatter().format(_make_record()))

        assert entry["level"] == "INFO"
        assert entry["message"] == "Stored summary (42 chars)"
        assert entry["logger"] == "lmq.jobs.worker"
        assert entry["timestamp"].endswith("+00:00")
        assert "context" not in entry

    def test_extra_fields_go_to_context(self) -> None:
        record = _make_record(worker_id="host:123", batch=3)

        entry = json.loads(JSONFormatter().format(record))

        assert entry["context"] == {"worker_id": "host:123", "batch": 3}

    def test_job_context_included(self) -> None:
        record = _make_record()
        with job_context("lesson-1", 2):
            JobContextFilter().filter(record)

        entry = json.loads(JSONFormatter().format(record))

        assert entry["context"] == {"entity_id": "lesson-1", "attempt": 2}
        assert "job_tag" not in entry["context"]

    def test_exception_included(self) -> None:
        try:
            raise ValueError("bad segment")
        except ValueError:
            record = _make_record()
            record.exc_info = sys.exc_info()

        entry = json.loads(JSONFormatter().format(record))

        assert "ValueError: bad segment" in entry["exception"]

    def test_non_serializable_values_use_str(self) -> None:
        record = _make_record(path=object())

        entry = json.loads(JSONFormatter().format(record))

        assert entry["context"]["path"].startswith("<object object")
