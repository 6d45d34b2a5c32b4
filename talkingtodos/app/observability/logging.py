from __future__ import annotations

import hashlib
import json
import logging
import os
from typing import Any, Dict

logger = logging.getLogger("talkingtodos.events")

_OBS_SALT = (os.getenv("OBS_HASH_SALT") or "obs-salt").encode("utf-8")

# What the user said or showed never leaves the process
_REDACTED_KEYS = frozenset({"audio", "image", "prompt", "transcription", "utterance", "texts", "text", "context"})


def hash_subject(subject_id: str | None) -> str:
    """Stable, salted 16-hex pseudonym for a client address or device id."""
    digest = hashlib.sha256(_OBS_SALT + (subject_id or "anon").encode("utf-8"))
    return digest.hexdigest()[:16]


def safe_redact(event: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(event, dict):
        return {}
    cleaned: Dict[str, Any] = {}
    for key, value in event.items():
        if key in _REDACTED_KEYS:
            continue
        cleaned[key] = safe_redact(value) if isinstance(value, dict) else value
    return cleaned


def structured_log(event: Dict[str, Any]) -> None:
    try:
        line = json.dumps(safe_redact(event), separators=(",", ":"), default=str, ensure_ascii=False)
    except (TypeError, ValueError):
        logger.warning("[OBS] unserializable event dropped", extra={"event_name": event.get("event") if isinstance(event, dict) else None})
        return
    logger.info(line)


__all__ = ["hash_subject", "structured_log", "safe_redact"]
