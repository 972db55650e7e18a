"""Raw ASGI subsites middleware — streaming-safe, context-clean.

Why raw ASGI instead of ``BaseHTTPMiddleware``
----------------------------------------------
``BaseHTTPMiddleware`` buffers responses and does not propagate
``ContextVar`` mutations to background tasks.  This middleware binds the
request context (a ``ContextVar``), so it uses the raw ASGI 3-callable
interface ``__call__(scope, receive, send)`` instead.

Per-request flow
----------------
1. Bind the request context: ``Host`` header, the override query parameter
   (``?SubsiteID=`` by default) and the session.  ``scope["session"]`` is
   used when Starlette's ``SessionMiddleware`` runs *outside* this
   middleware; otherwise the session is a throw-away mapping.
2. Resolve the current subsite id (override → session → domain) and store
   it on ``scope["state"]`` as ``subsite_id``.
3. Call the app, then restore the previous context in ``finally``.

Error handling
--------------
Failures of the stores while resolving → ``500`` with a JSON
``{"detail": "..."}`` body.  An unmatched host is *not* an error: it
resolves to the main site (``0``).
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from fastapi_subsites.core.context import bind_request, reset_request
from fastapi_subsites.core.exceptions import SubsitesError
from fastapi_subsites.core.session import MappingSessionStore

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from starlette.types import ASGIApp, Receive, Scope, Send

    from fastapi_subsites.manager import SubsitesManager

logger = logging.getLogger(__name__)


def _json_response(send: Send, status_code: int, detail: str) -> Awaitable[None]:
    """Build and send a minimal JSON error response."""
    body = json.dumps({"detail": detail}).encode("utf-8")
    headers: list[tuple[bytes, bytes]] = [
        (b"content-type", b"application/json"),
        (b"content-length", str(len(body)).encode()),
    ]

    async def _send() -> None:
        await send({"type": "http.response.start", "status": status_code, "headers": headers})
        await send({"type": "http.response.body", "body": body, "more_body": False})

    return _send()


class SubsitesMiddleware:
    """Raw ASGI middleware that binds and resolves the current subsite.

    Args:
        app: The downstream ASGI application.
        manager: The configured :class:`~fastapi_subsites.manager.SubsitesManager`.
        excluded_paths: URL path prefixes that bypass subsite resolution
            (e.g. ``["/health", "/docs"]``).

    Example::

        app.add_middleware(SubsitesMiddleware, manager=manager, excluded_paths=["/health"])
        app.add_middleware(SessionMiddleware, secret_key="change-me")
    """

    def __init__(
        self,
        app: ASGIApp,
        manager: SubsitesManager,
        excluded_paths: list[str] | None = None,
    ) -> None:
        self._app = app
        self._manager = manager
        self._excluded: list[str] = excluded_paths or []

    def _is_excluded(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self._excluded)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self._app(scope, receive, send)
            return
        if self._is_excluded(scope.get("path", "/")):
            await self._app(scope, receive, send)
            return
        await self._handle(scope, receive, send)

    async def _handle(self, scope: Scope, receive: Receive, send: Send) -> None:
        from starlette.requests import HTTPConnection  # noqa: PLC0415

        config = self._manager.config
        conn = HTTPConnection(scope, receive)
        host = conn.headers.get("host") or (conn.url.hostname or "")
        override = conn.query_params.get(config.override_param)
        session = MappingSessionStore(scope.get("session"))

        token = bind_request(host=host, override=override, session=session, session_key=config.session_key)
        try:
            try:
                tenant_id = await self._manager.context.current()
            except (SubsitesError, SQLAlchemyError) as exc:
                logger.exception("Subsite resolution failed for host %r: %s", host, exc)  # noqa: TRY401
                await _json_response(send, 500, "Internal subsites error")
                return

            # Request.state wraps this dict.
            scope.setdefault("state", {})["subsite_id"] = tenant_id

            await self._app(scope, receive, send)
        finally:
            reset_request(token)


__all__ = ["SubsitesMiddleware"]
