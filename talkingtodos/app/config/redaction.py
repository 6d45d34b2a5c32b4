from __future__ import annotations

import re
from typing import Any, Dict

_SECRET_KEYS = {
    "authorization",
    "api_key",
    "key",
    "token",
    "secret",
    "audio",
    "image",
    "inline_data",
    "inlinedata",
    "prompt",
    "transcription",
    "contents",
    "messages",
}
_API_KEY_PATTERN = re.compile(r"(sk-[A-Za-z0-9]{8,}|AIza[0-9A-Za-z\-_]{20,})")


def redact_secrets(s: str) -> str:
    if not s:
        return s
    redacted = _API_KEY_PATTERN.sub("[redacted]", s)
    # Query-string keys (Gemini passes ?key=...)
    redacted = re.sub(r"([?&]key=)[^&\s]+", r"\1[redacted]", redacted, flags=re.IGNORECASE)
    redacted = re.sub(r"(Authorization:\s*Bearer\s+)[^\s]+", r"\1[redacted]", redacted, flags=re.IGNORECASE)
    return redacted


MAX_DETAIL_CHARS = 200


def safe_error_detail(exc: BaseException | str, limit: int = MAX_DETAIL_CHARS) -> str:
    """Redacted, truncated text for internal failure details. Never shown to users."""
    return redact_secrets(str(exc))[:limit]


def safe_dict(d: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(d, dict):
        return {}
    return {k: v for k, v in d.items() if str(k).lower() not in _SECRET_KEYS}


__all__ = ["redact_secrets", "safe_error_detail", "safe_dict"]
