"""Resolve a lesson's stored media into bytes for the provider.

Lesson media is uploaded by the content platform and referenced as
``/assets/<name>``; the file itself lives at ``<media_root>/uploads/<name>``.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath

from lmq.db.types import Lesson
from lmq.jobs.exceptions import SourceUnavailableError
from lmq.provider.models import SourceArtifact

logger = logging.getLogger(__name__)

TRANSCRIBABLE_CONTENT_TYPES = frozenset({"video", "audio"})

ASSETS_PREFIX = "/assets/"
UPLOADS_DIR = "uploads"


class MediaSourceResolver:
    """Maps lesson content URLs to files under a media root."""

    def __init__(self, media_root: Path) -> None:
        self.media_root = media_root
        self._uploads = (media_root / UPLOADS_DIR).resolve()

    def path_for(self, entity_id: str, content_url: str) -> Path:
        """Translate a content URL to a path inside the uploads directory.

        Raises:
            SourceUnavailableError: If the URL isn't an /assets/ reference or
                escapes the uploads directory.
        """
        if not content_url.startswith(ASSETS_PREFIX):
            raise SourceUnavailableError(
                entity_id, f"unsupported content url {content_url!r}"
            )

        relative = PurePosixPath(content_url[len(ASSETS_PREFIX) :])
        if not relative.parts or ".." in relative.parts:
            raise SourceUnavailableError(
                entity_id, f"invalid asset path {content_url!r}"
            )

        path = (self._uploads / Path(*relative.parts)).resolve()
        if not path.is_relative_to(self._uploads):
            raise SourceUnavailableError(
                entity_id, f"asset path escapes uploads directory: {content_url!r}"
            )
        return path

    def resolve(self, entity_id: str, lesson: Lesson | None) -> SourceArtifact:
        """Load the media for a lesson.

        Blocking file I/O; call via asyncio.to_thread from async code.

        Args:
            entity_id: Lesson id the job belongs to.
            lesson: The lesson row, or None if it has been deleted.

        Returns:
            SourceArtifact with the file bytes and its name.

        Raises:
            SourceUnavailableError: With the reason the media can't be used.
        """
        if lesson is None:
            raise SourceUnavailableError(entity_id, "lesson not found")
        if lesson.content_type not in TRANSCRIBABLE_CONTENT_TYPES:
            raise SourceUnavailableError(
                entity_id,
                f"content type {lesson.content_type!r} is not video or audio",
            )
        if not lesson.content_url:
            raise SourceUnavailableError(entity_id, "lesson has no content url")

        path = self.path_for(entity_id, lesson.content_url)
        try:
            data = path.read_bytes()
        except FileNotFoundError as e:
            raise SourceUnavailableError(entity_id, f"media file missing: {path.name}") from e
        except OSError as e:
            raise SourceUnavailableError(
                entity_id, f"cannot read media file {path.name}: {e.strerror}"
            ) from e

        if not data:
            raise SourceUnavailableError(entity_id, f"media file is empty: {path.name}")

        logger.debug("Resolved %s to %s (%d bytes)", entity_id, path, len(data))
        return SourceArtifact(data=data, filename=path.name)
