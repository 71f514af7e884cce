"""Shared test fixtures for Lesson Media Queue."""

import asyncio
import os
import shutil
import sqlite3
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from lmq.config import (
    DispatcherConfig,
    LMQConfig,
    ProviderConfig,
    ServerConfig,
    StorageConfig,
    clear_config_cache,
)
from lmq.db import Course, Lesson, insert_course, insert_lesson
from lmq.db.connection import DaemonConnectionPool
from lmq.db.schema import initialize_database
from lmq.provider import ProviderHTTPError, Segment, TranscriptionResult

# Environment variables read by the config layer; cleared for every test
_CONFIG_ENV_PREFIXES = ("LMQ_",)
_CONFIG_ENV_ALIASES = (
    "AI_PROVIDER",
    "OPENAI_API_KEY",
    "LOCAL_WHISPER_URL",
    "LOCAL_OLLAMA_URL",
    "LOCAL_LLM_MODEL",
)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test isolation."""
    dir_path = tempfile.mkdtemp()
    yield Path(dir_path)
    shutil.rmtree(dir_path, ignore_errors=True)


@pytest.fixture
def temp_db(temp_dir: Path) -> Path:
    """Create a temporary database path."""
    return temp_dir / "test_queue.db"


@pytest.fixture(autouse=True)
def lmq_data_dir(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point LMQ_DATA_DIR at a temp directory and clear config env vars.

    Keeps tests from reading ~/.lmq or the developer's environment.
    """
    for name in list(os.environ):
        if name.startswith(_CONFIG_ENV_PREFIXES) or name in _CONFIG_ENV_ALIASES:
            monkeypatch.delenv(name, raising=False)

    data_dir = temp_dir / ".lmq"
    data_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("LMQ_DATA_DIR", str(data_dir))
    clear_config_cache()
    yield data_dir
    clear_config_cache()


@pytest.fixture
def db_conn():
    """Create an in-memory database with schema."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    initialize_database(conn)
    yield conn
    conn.close()


@pytest.fixture
def file_db_conn(temp_db: Path):
    """Connection to an on-disk database, for tests sharing it across threads."""
    conn = sqlite3.connect(str(temp_db), timeout=10.0)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    initialize_database(conn)
    yield conn
    conn.close()


@pytest.fixture
def media_root(temp_dir: Path) -> Path:
    """Media root with an uploads/ directory holding one small clip."""
    root = temp_dir / "media"
    (root / "uploads").mkdir(parents=True)
    (root / "uploads" / "clip.mp4").write_bytes(b"\x00\x00\x00\x18ftypmp42 fake")
    return root


def add_lesson(
    conn: sqlite3.Connection,
    lesson_id: str,
    *,
    title: str | None = None,
    content_type: str | None = "video",
    content_url: str | None = "/assets/clip.mp4",
    course_id: str | None = None,
) -> Lesson:
    """Insert a lesson (and commit) for tests."""
    lesson = Lesson(
        id=lesson_id,
        title=title or f"Lesson {lesson_id}",
        updated_at=datetime.now(timezone.utc).isoformat(),
        course_id=course_id,
        content_type=content_type,
        content_url=content_url,
    )
    insert_lesson(conn, lesson)
    conn.commit()
    return lesson


@pytest.fixture
def make_lesson(db_conn: sqlite3.Connection):
    """Factory inserting lessons into the in-memory db_conn."""

    def _make(lesson_id: str, **kwargs) -> Lesson:
        return add_lesson(db_conn, lesson_id, **kwargs)

    return _make


@pytest.fixture
def make_course(db_conn: sqlite3.Connection):
    def _make(course_id: str, title: str) -> Course:
        course = Course(id=course_id, title=title)
        insert_course(db_conn, course)
        db_conn.commit()
        return course

    return _make


class FakeProvider:
    """Scriptable ProviderClient.

    Set ``transcribe_error``/``summarize_error`` to make a call fail, and
    ``transcribe_delay``/``summarize_delay`` to make a call slow. ``block``
    holds every transcription until the event is set.
    """

    def __init__(self) -> None:
        self.result = TranscriptionResult(
            text="Welcome to the course. Today we cover queues.",
            segments=[
                Segment(start=0.0, end=2.5, text=" Welcome to the course."),
                Segment(start=2.5, end=5.0, text=" Today we cover queues."),
            ],
        )
        self.summary = "An introduction to queues."
        self.transcribe_error: Exception | None = None
        self.summarize_error: Exception | None = None
        self.transcribe_delay = 0.0
        self.summarize_delay = 0.0
        self.block: asyncio.Event | None = None
        self.transcribed: list[str] = []
        self.summarized: list[str] = []
        self.closed = False

    async def transcribe(self, artifact):
        self.transcribed.append(artifact.filename)
        if self.block is not None:
            await self.block.wait()
        if self.transcribe_delay:
            await asyncio.sleep(self.transcribe_delay)
        if self.transcribe_error is not None:
            raise self.transcribe_error
        return self.result

    async def summarize(self, text: str) -> str:
        self.summarized.append(text)
        if self.summarize_delay:
            await asyncio.sleep(self.summarize_delay)
        if self.summarize_error is not None:
            raise self.summarize_error
        return self.summary

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def failing_provider() -> FakeProvider:
    """Provider whose transcription answers HTTP 500."""
    provider = FakeProvider()
    provider.transcribe_error = ProviderHTTPError(500, "upstream exploded")
    return provider


@pytest.fixture
def connection_pool(temp_db: Path):
    """DaemonConnectionPool over an initialized on-disk database."""
    pool = DaemonConnectionPool(temp_db, timeout=10.0)
    initialize_database(pool.get_connection())
    yield pool
    if not pool.is_closed:
        pool.close()


@pytest.fixture
def pool_lesson(connection_pool: DaemonConnectionPool):
    """Factory inserting lessons through the pool's write connection."""

    def _make(lesson_id: str, **kwargs) -> Lesson:
        with connection_pool.write_connection() as conn:
            return add_lesson(conn, lesson_id, **kwargs)

    return _make


@pytest.fixture
def app_config(temp_db: Path, media_root: Path) -> LMQConfig:
    """Configuration for an app/runtime on temp storage with fast timings."""
    return LMQConfig(
        server=ServerConfig(shutdown_timeout=2.0),
        dispatcher=DispatcherConfig(
            interval_seconds=0.05,
            batch_size=5,
            max_workers=2,
            stale_after_seconds=60,
            job_timeout_seconds=5.0,
        ),
        provider=ProviderConfig(provider="local"),
        storage=StorageConfig(database_path=temp_db, media_root=media_root),
    )
