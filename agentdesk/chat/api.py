"""HTTP client for the agentdesk backend endpoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from agentdesk.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Authenticated user context passed explicitly into chat components."""

    user_id: str
    access_token: str

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}


class ApiError(Exception):
    """Backend call failed: transport error (status None) or non-2xx reply."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class BackendClient:
    """Sends JSON/multipart requests to the backend with bearer auth.

    A new ``httpx.AsyncClient`` is opened per request, so the client holds
    no connection state and is safe to share across sessions.
    """

    def __init__(self, base_url: str | None = None, timeout: float | None = None) -> None:
        self.base_url = (base_url or settings.backend_url).rstrip("/")
        self.timeout = settings.request_timeout if timeout is None else timeout

    async def request(
        self,
        method: str,
        path: str,
        identity: Identity,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Perform a request and return the decoded JSON object.

        Raises:
            ApiError: on transport failure, non-2xx status, or a body that
                is not a JSON object.
        """
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.request(
                    method,
                    url,
                    headers=identity.auth_headers(),
                    json=json,
                    params=params,
                    files=files,
                )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ApiError(f"Request to {path} failed: {exc}") from exc

        if resp.status_code < 200 or resp.status_code >= 300:
            raise ApiError(_error_message(resp), status=resp.status_code)

        try:
            data = resp.json()
        except ValueError as exc:
            raise ApiError(f"Invalid JSON from {path}", status=resp.status_code) from exc
        if not isinstance(data, dict):
            raise ApiError(f"Unexpected body from {path}", status=resp.status_code)
        return data


def _error_message(resp: httpx.Response) -> str:
    """Pull ``{"error": ...}`` out of a failed response, falling back to text."""
    try:
        body = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}: {resp.text[:200]}"
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {resp.status_code}"
