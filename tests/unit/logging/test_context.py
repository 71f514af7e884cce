"""Unit tests for logging context module."""

import asyncio
import logging

from lmq.logging.context import (
    JobContextFilter,
    clear_job_context,
    get_job_context,
    job_context,
    set_job_context,
)


def _record() -> logging.LogRecord:
    return logging.LogRecord(
        name="lmq.jobs.worker",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="hello",
        args=(),
        exc_info=None,
    )


class TestJobContext:
    def test_default_context_is_none(self) -> None:
        assert get_job_context() == (None, None)

    def test_set_and_clear(self) -> None:
        set_job_context("lesson-1", 2)
        assert get_job_context() == ("lesson-1", 2)

        clear_job_context()
        assert get_job_context() == (None, None)

    def test_context_manager_restores_previous(self) -> None:
        with job_context("outer", 1):
            with job_context("inner", 3):
                assert get_job_context() == ("inner", 3)
            assert get_job_context() == ("outer", 1)
        assert get_job_context() == (None, None)

    def test_context_manager_restores_on_error(self) -> None:
        try:
            with job_context("lesson-1", 1):
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert get_job_context() == (None, None)

    def test_tasks_have_independent_context(self) -> None:
        """Each worker task sees only the job it is running."""

        async def worker(entity_id: str, attempt: int) -> tuple:
            with job_context(entity_id, attempt):
                await asyncio.sleep(0.01)
                return get_job_context()

        async def _test() -> list:
            return await asyncio.gather(worker("a", 1), worker("b", 2))

        assert asyncio.run(_test()) == [("a", 1), ("b", 2)]


class TestJobContextFilter:
    def test_adds_fields_inside_job(self) -> None:
        record = _record()
        with job_context("3f9c2a1b-4e6d-4c2a", 2):
            assert JobContextFilter().filter(record)

        assert record.entity_id == "3f9c2a1b-4e6d-4c2a"
        assert record.attempt == 2
        assert record.job_tag == "[job:3f9c2a1b#2] "

    def test_tag_without_attempt(self) -> None:
        record = _record()
        with job_context("lesson-1"):
            JobContextFilter().filter(record)

        assert record.job_tag == "[job:lesson-1] "

    def test_empty_outside_job(self) -> None:
        record = _record()
        assert JobContextFilter().filter(record)

        assert record.entity_id is None
        assert record.attempt is None
        assert record.job_tag == ""
