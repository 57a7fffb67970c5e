"""Bearer-token authentication for backend routes."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from functools import wraps

from aiohttp import web

from agentdesk.server.accounts import Account, AccountStore

logger = logging.getLogger(__name__)

ACCOUNT_KEY = web.AppKey("account_store", AccountStore)

# Handler signature: async (request, account) -> response
AuthedHandler = Callable[[web.Request, Account], Awaitable[web.StreamResponse]]


def bearer_token(request: web.Request) -> str:
    """Extract the token from ``Authorization: Bearer <token>``."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


async def authenticate(request: web.Request) -> Account | None:
    store = request.app[ACCOUNT_KEY]
    return await store.get_by_token(bearer_token(request))


def require_account(
    handler: AuthedHandler, *, admin: bool = False
) -> Callable[[web.Request], Awaitable[web.StreamResponse]]:
    """Wrap a handler so it only runs for an authenticated (optionally admin) account."""

    @wraps(handler)
    async def wrapper(request: web.Request) -> web.StreamResponse:
        account = await authenticate(request)
        if account is None:
            logger.warning("Rejected %s %s: authentication failed", request.method, request.path)
            return web.json_response({"error": "Authentication failed"}, status=401)
        if admin and not account.is_admin:
            logger.warning(
                "Rejected %s %s: %s is not admin", request.method, request.path, account.user_id
            )
            return web.json_response(
                {"error": "Access denied - admin privileges required"}, status=403
            )
        return await handler(request, account)

    return wrapper


def require_admin(handler: AuthedHandler) -> Callable[[web.Request], Awaitable[web.StreamResponse]]:
    return require_account(handler, admin=True)
