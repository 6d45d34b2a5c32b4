from __future__ import annotations

import uuid
from typing import Optional

from fastapi import Request


def get_request_id(request: Optional[Request], header_name: str = "x-request-id") -> str:
    """Id stamped by ``RequestIdMiddleware``, else the inbound header, else a fresh uuid."""
    if request is None:
        return str(uuid.uuid4())
    stamped = (request.scope.get("state") or {}).get("request_id")
    if isinstance(stamped, str) and stamped:
        return stamped
    inbound = (request.headers.get(header_name) or "").strip()
    return inbound or str(uuid.uuid4())


__all__ = ["get_request_id"]
