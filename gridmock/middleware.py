"""
ASGI middleware for the mock server.

RequestTrackingMiddleware records every in-flight HTTP request so that a
drain that times out can name the requests that held it up, and stamps
the no-cache headers the frontend relies on onto every response.
"""

import itertools
import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, private",
    "Pragma": "no-cache",
    "Expires": "0",
}


@dataclass(frozen=True)
class InFlightRequest:
    request_id: int
    method: str
    path: str
    started_at: float

    def age(self, now: Optional[float] = None) -> float:
        return (now if now is not None else time.monotonic()) - self.started_at

    def describe(self, now: Optional[float] = None) -> str:
        return f"#{self.request_id} {self.method} {self.path} ({self.age(now):.2f}s)"


class InFlightRegistry:
    """Requests currently being handled, oldest first."""

    def __init__(self):
        self._requests: dict[int, InFlightRequest] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def begin(self, method: str, path: str) -> InFlightRequest:
        with self._lock:
            entry = InFlightRequest(next(self._ids), method, path, time.monotonic())
            self._requests[entry.request_id] = entry
        return entry

    def end(self, entry: InFlightRequest) -> None:
        with self._lock:
            self._requests.pop(entry.request_id, None)

    def snapshot(self) -> list[InFlightRequest]:
        with self._lock:
            return sorted(self._requests.values(), key=lambda r: r.started_at)

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)


class RequestTrackingMiddleware:
    """Pure ASGI middleware so background tasks run after the body is sent."""

    def __init__(self, app: ASGIApp, registry: InFlightRegistry):
        self.app = app
        self.registry = registry

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        entry = self.registry.begin(scope["method"], scope["path"])

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in NO_CACHE_HEADERS.items():
                    headers[name] = value
            await send(message)

        try:
            await self.app(scope, receive, send_with_headers)
        finally:
            self.registry.end(entry)
