"""Tests for the file upload adapter."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from agentdesk.chat.api import ApiError, BackendClient
from agentdesk.chat.models import Attachment
from agentdesk.chat.uploads import UPLOAD_PATH, FileUploadAdapter, UploadError


def _client(return_value=None, side_effect=None) -> MagicMock:
    client = MagicMock(spec=BackendClient)
    client.request = AsyncMock(return_value=return_value, side_effect=side_effect)
    return client


def _reply(**overrides) -> dict:
    reply = {
        "id": "f1",
        "filename": "deck.pdf",
        "url": "http://test.local/media/uploads/alice/f1.pdf",
        "type": "application/pdf",
        "size": 4,
    }
    reply.update(overrides)
    return reply


class TestUpload:
    async def test_returns_attachment_with_url(self, identity):
        client = _client(_reply())

        attachment = await FileUploadAdapter(client).upload(identity, b"%PDF", "deck.pdf")

        assert attachment == Attachment(
            name="deck.pdf",
            mime_type="application/pdf",
            size=4,
            url="http://test.local/media/uploads/alice/f1.pdf",
        )
        args, kwargs = client.request.call_args
        assert args == ("POST", UPLOAD_PATH, identity)
        assert kwargs["files"]["file"] == ("deck.pdf", b"%PDF", "application/pdf")

    async def test_too_large_is_rejected_locally(self, identity):
        client = _client(_reply())
        adapter = FileUploadAdapter(client, max_size=3)

        with pytest.raises(UploadError, match="exceeds"):
            await adapter.upload(identity, b"%PDF", "deck.pdf")
        client.request.assert_not_called()

    @pytest.mark.parametrize("filename", ["run.exe", "notes"])
    async def test_unsupported_type(self, identity, filename):
        client = _client(_reply())
        with pytest.raises(UploadError, match="not a supported"):
            await FileUploadAdapter(client).upload(identity, b"data", filename)
        client.request.assert_not_called()

    async def test_empty_file(self, identity):
        client = _client(_reply())
        with pytest.raises(UploadError, match="empty"):
            await FileUploadAdapter(client).upload(identity, b"", "a.txt")

    async def test_backend_error(self, identity):
        client = _client(side_effect=ApiError("File too large", 413))
        with pytest.raises(UploadError, match="Upload failed"):
            await FileUploadAdapter(client).upload(identity, b"%PDF", "deck.pdf")

    async def test_missing_url(self, identity):
        client = _client(_reply(url=None))
        with pytest.raises(UploadError, match="no file URL"):
            await FileUploadAdapter(client).upload(identity, b"%PDF", "deck.pdf")


class TestUploadMany:
    async def test_uploads_in_order(self, identity):
        client = _client()
        client.request.side_effect = [
            _reply(filename="a.txt", type="text/plain", url="http://x/a"),
            _reply(filename="b.png", type="image/png", url="http://x/b"),
        ]

        attachments = await FileUploadAdapter(client).upload_many(
            identity, [("a.txt", b"aa"), ("b.png", b"bb")]
        )

        assert [a.url for a in attachments] == ["http://x/a", "http://x/b"]

    async def test_count_limit_includes_already_attached(self, identity):
        client = _client(_reply())
        adapter = FileUploadAdapter(client, max_files=5)

        with pytest.raises(UploadError, match="Maximum 5 files"):
            await adapter.upload_many(identity, [("a.txt", b"a"), ("b.txt", b"b")], attached=4)
        client.request.assert_not_called()
