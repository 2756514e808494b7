# file: src/auth/middleware.py

"""ASGI middleware that enforces a shared bearer secret."""

from __future__ import annotations

import hmac
import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from core import Settings

logger = logging.getLogger(__name__)


class AuthMiddleware:
    """Require ``Authorization: Bearer <AUTH_SECRET>`` when AUTH_SECRET is configured."""

    # paths to skip authentication even when a secret is set
    WHITELIST = {
        "/health",
        "/favicon.ico",
    }

    def __init__(self, app: ASGIApp, settings: Settings) -> None:
        self.app = app
        self.settings = settings

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        # Only handle HTTP requests; pass through websockets, lifespan, etc.
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        secret = self.settings.AUTH_SECRET
        if secret is None or scope["path"] in self.WHITELIST:
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)

        # Allow CORS preflight
        if request.method.upper() == "OPTIONS":
            await self.app(scope, receive, send)
            return

        auth = request.headers.get("Authorization", "")
        if not auth.startswith("Bearer "):
            resp = JSONResponse({"detail": "Missing bearer token"}, status_code=401)
            await resp(scope, receive, send)
            return

        token = auth.split(" ", 1)[1]
        if not hmac.compare_digest(token.encode(), secret.get_secret_value().encode()):
            logger.warning("Rejected bearer token", extra={"path": scope["path"]})
            resp = JSONResponse({"detail": "Invalid token"}, status_code=401)
            await resp(scope, receive, send)
            return

        await self.app(scope, receive, send)
