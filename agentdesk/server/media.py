"""MediaStore: local directory for synthesized audio and user uploads, served at /media/."""

from __future__ import annotations

import logging
import re
import time
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from agentdesk.chat.uploads import ACCEPTED_EXTENSIONS, file_extension
from agentdesk.config import settings

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 20 * 1024 * 1024  # 20 MB per clip or upload
MEDIA_ROUTE = "/media"
UPLOAD_DIR = "uploads"

_SAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9._\-]")


@dataclass(frozen=True)
class StoredUpload:
    id: str
    path: str  # relative to the media root


class MediaStore:
    """Sandboxed local storage for audio clips and uploaded files.

    Uploads live under ``uploads/<user>/``; names are generated, never taken
    from the client.

    Singleton accessed via ``MediaStore.get()``.  Pass an explicit *root*
    for test isolation (e.g. ``tmp_path / "media"``).
    """

    _instance: MediaStore | None = None

    def __init__(self, root: Path | None = None, base_url: str | None = None) -> None:
        self._root = (root or settings.media_dir).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._base_url = (base_url or settings.public_base_url).rstrip("/")

    @classmethod
    def get(cls) -> MediaStore:
        """Return the shared MediaStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Clear the singleton (for tests)."""
        cls._instance = None

    @property
    def root(self) -> Path:
        return self._root

    @staticmethod
    def sanitize_filename(name: str) -> str:
        """Replace unsafe characters and strip leading dots.

        Raises ``ValueError`` if the result is empty.
        """
        sanitized = _SAFE_FILENAME_RE.sub("_", name).lstrip(".")[:255]
        if not sanitized:
            msg = f"Filename is empty after sanitization: {name!r}"
            raise ValueError(msg)
        return sanitized

    def save_audio(self, data: bytes, extension: str = "mp3") -> str:
        """Write a clip under a fresh name. Returns the stored filename."""
        if len(data) > MAX_FILE_SIZE:
            msg = f"Audio too large: {len(data)} bytes (max {MAX_FILE_SIZE})"
            raise ValueError(msg)
        name = self.sanitize_filename(f"tts_{int(time.time())}_{uuid.uuid4().hex[:8]}.{extension}")
        (self._root / name).write_bytes(data)
        logger.info("Stored audio clip %s (%d bytes)", name, len(data))
        return name

    def save_upload(self, user_id: str, data: bytes, filename: str) -> StoredUpload:
        """Write a user's file into their own folder under a fresh name."""
        if not data:
            raise ValueError("File is empty")
        if len(data) > MAX_FILE_SIZE:
            msg = f"File too large: {len(data)} bytes (max {MAX_FILE_SIZE})"
            raise ValueError(msg)
        extension = file_extension(filename)
        if extension not in ACCEPTED_EXTENSIONS:
            msg = f"File type not allowed: {filename!r}"
            raise ValueError(msg)

        folder = self._root / UPLOAD_DIR / self.sanitize_filename(user_id)
        folder.mkdir(parents=True, exist_ok=True)
        file_id = uuid.uuid4().hex
        (folder / f"{file_id}{extension}").write_bytes(data)
        logger.info("Stored upload %s for %s (%d bytes)", file_id, user_id, len(data))
        return StoredUpload(id=file_id, path=f"{UPLOAD_DIR}/{folder.name}/{file_id}{extension}")

    def public_url(self, name: str) -> str:
        return f"{self._base_url}{MEDIA_ROUTE}/{name}"
