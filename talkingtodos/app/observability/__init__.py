from __future__ import annotations

from .request_id import get_request_id
from .logging import structured_log, safe_redact, hash_subject

__all__ = [
    "get_request_id",
    "structured_log",
    "safe_redact",
    "hash_subject",
]
