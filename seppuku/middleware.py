"""Retirement Middleware — ASGI wrapper around the retirement controller.

Counts every HTTP request toward ``max_requests`` before handing it to the
app, and reports exceptions escaping the app on the host's fatal-error
channel. The exception is re-raised unchanged.
"""

from starlette.requests import Request
from starlette.types import ASGIApp, Receive, Scope, Send

from seppuku.controller import RetirementController
from seppuku.events import FATAL_ERROR


class RetirementMiddleware:
    """ASGI middleware that feeds requests and errors to a RetirementController."""

    def __init__(self, app: ASGIApp, controller: RetirementController):
        self.app = app
        self.controller = controller

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        self.controller.record_request(Request(scope, receive))

        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            self.controller.server.emit(FATAL_ERROR, exc)
            raise
