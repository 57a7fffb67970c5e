"""File attachments: upload to the backend before the message that carries them."""

from __future__ import annotations

import logging
import mimetypes
import os
from typing import TYPE_CHECKING

from agentdesk.chat.api import ApiError, BackendClient
from agentdesk.chat.models import Attachment

if TYPE_CHECKING:
    from collections.abc import Sequence

    from agentdesk.chat.api import Identity

logger = logging.getLogger(__name__)

UPLOAD_PATH = "/file-upload"
MAX_UPLOAD_FILES = 5
MAX_UPLOAD_SIZE = 20 * 1024 * 1024
ACCEPTED_EXTENSIONS = frozenset(
    {
        ".pdf",
        ".doc",
        ".docx",
        ".txt",
        ".jpg",
        ".jpeg",
        ".png",
        ".gif",
        ".mp3",
        ".wav",
        ".mp4",
        ".mov",
    }
)


class UploadError(Exception):
    """A file was rejected locally or by the backend."""


def file_extension(filename: str) -> str:
    return os.path.splitext(filename)[1].lower()


class FileUploadAdapter:
    """Uploads files and returns them as attachments with a public URL.

    Size, type and count limits are checked before anything is sent; the
    backend enforces the same size and type rules again.
    """

    def __init__(
        self,
        client: BackendClient | None = None,
        max_size: int = MAX_UPLOAD_SIZE,
        max_files: int = MAX_UPLOAD_FILES,
    ) -> None:
        self._client = client or BackendClient()
        self._max_size = max_size
        self._max_files = max_files

    async def upload(self, identity: Identity, data: bytes, filename: str) -> Attachment:
        if not data:
            raise UploadError(f"{filename} is empty")
        if len(data) > self._max_size:
            raise UploadError(f"{filename} exceeds the {self._max_size} byte limit")
        if file_extension(filename) not in ACCEPTED_EXTENSIONS:
            raise UploadError(f"{filename} is not a supported file type")

        content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        try:
            resp = await self._client.request(
                "POST",
                UPLOAD_PATH,
                identity,
                files={"file": (filename, data, content_type)},
            )
        except ApiError as exc:
            raise UploadError(f"Upload failed: {exc}") from exc

        url = resp.get("url")
        if not url:
            raise UploadError("Upload failed: no file URL returned")
        logger.info("Uploaded %s (%d bytes)", filename, len(data))
        return Attachment(
            name=str(resp.get("filename") or filename),
            mime_type=str(resp.get("type") or content_type),
            size=int(resp.get("size") or len(data)),
            url=str(url),
        )

    async def upload_many(
        self,
        identity: Identity,
        files: Sequence[tuple[str, bytes]],
        attached: int = 0,
    ) -> list[Attachment]:
        """Upload *files* as (filename, data) pairs, in order.

        *attached* is how many files the message already carries; the total
        may not exceed the per-message limit.
        """
        if attached + len(files) > self._max_files:
            raise UploadError(f"Maximum {self._max_files} files allowed")
        return [await self.upload(identity, data, name) for name, data in files]
