"""
Request id stamping for the HTTP surface.

Voice and photo routes carry large base64 bodies; only their declared size is
logged, never the body itself.
"""

import logging
import re
import time
import uuid
from typing import Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Incoming ids are reused only when they look like hex/uuid, max 64 chars
_SAFE_REQUEST_ID_PATTERN = re.compile(r"^[a-fA-F0-9\-]{1,64}$")

Header = Tuple[bytes, bytes]


def _header(headers: Iterable[Header], name: bytes) -> Optional[str]:
    for key, value in headers:
        if isinstance(key, bytes) and key.lower() == name and isinstance(value, bytes):
            return value.decode("latin-1").strip()
    return None


def _content_length(headers: Iterable[Header]) -> Optional[int]:
    raw = _header(headers, b"content-length")
    return int(raw) if raw and raw.isdigit() else None


class RequestIdMiddleware:
    """ASGI middleware: one request id per HTTP request, echoed on the response."""

    def __init__(self, app, header_name: str = "x-request-id"):
        self.app = app
        self.header_name = header_name.lower().encode("latin-1")

    def resolve_request_id(self, headers: Iterable[Header]) -> str:
        existing = _header(headers, self.header_name)
        if existing and _SAFE_REQUEST_ID_PATTERN.match(existing):
            return existing
        return str(uuid.uuid4())

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = time.monotonic()
        request_headers: List[Header] = list(scope.get("headers", []))
        request_id = self.resolve_request_id(request_headers)
        scope.setdefault("state", {})["request_id"] = request_id
        status: Optional[int] = None

        async def stamped_send(message):
            nonlocal status
            if message["type"] == "http.response.start":
                status = message.get("status", 0)
                headers = list(message.get("headers", []))
                if _header(headers, self.header_name) is None:
                    headers.append((self.header_name, request_id.encode("latin-1")))
                message = {**message, "headers": headers}
            await send(message)

        try:
            await self.app(scope, receive, stamped_send)
        finally:
            path = scope.get("path", "?")
            level = logging.DEBUG if path == "/health" else logging.INFO
            logger.log(
                level,
                "[HTTP] request",
                extra={
                    "method": scope.get("method", "?"),
                    "path": path,
                    "status": status,
                    "body_bytes": _content_length(request_headers),
                    "duration_ms": int((time.monotonic() - started) * 1000),
                    "request_id": request_id,
                },
            )


__all__ = ["RequestIdMiddleware"]
