"""Intent oracle client: utterance audio + context in, structured reply out.

The oracle is treated as a black box with no behavioural guarantees beyond
its schema. The same utterance may yield different, individually valid
replies; nothing here assumes otherwise, and nothing here retries.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import ValidationError

from talkingtodos.app.config import Settings, get_settings
from talkingtodos.app.observability import structured_log
from talkingtodos.app.perf import PerfTimeoutError, elapsed_ms, enforce_timeout
from talkingtodos.app.providers import (
    InlinePart,
    OracleProvider,
    OracleProviderError,
    OracleRequest,
    ProviderBadResponseError,
    ProviderTimeoutError,
)

from .errors import ErrorKind, Result
from .schemas import VOICE_RESPONSE_SCHEMA, OracleVoicePayload
from .snapshot import ContextSnapshot, serialize_snapshot

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

VOICE_INSTRUCTIONS = """You are a helpful voice assistant for a personal lists and todos app. \
The user has spoken a short command or question; the audio is attached.

Available user data (lists with their todos):
{context}

Reply with a single JSON object:
- "transcription": exactly what the user said
- "message": a short, conversational reply grounded in the data above
- "action" (optional): what the app should do next

Available actions ("target" is always a string):
- "navigate": open a route; target is a route path such as "/lists"
- "show_list": open a list; target is the list id
- "show_todo": show a todo; target is the todo id or the id of the list holding it
- "create_todo": add new todos; target is the list id; data is a JSON object with "texts", \
an array of short item phrases
- "update_todo", "delete_todo": change or remove a todo; target is the todo id
- "create_list": make a new list; data is a JSON object with "listName" and optional "template"
- "add_todo": add todos exactly as spoken; target is the list id; data has "texts"

Only use ids that appear in the data. If the user asks for a list that does not exist, \
say so, suggest a similar list and leave out the action."""

VOICE_USER_PROMPT = "The user said something to me via voice. Respond helpfully based on their request and the data provided."


def encode_payload(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def extract_json(text: str) -> Any:
    """Parse an oracle reply, tolerating code fences or prose around one object."""
    stripped = (text or "").strip()
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        match = _JSON_OBJECT.search(stripped)
        if not match:
            raise
        return json.loads(match.group(0))


async def invoke_structured(
    provider: OracleProvider,
    request: OracleRequest,
    *,
    timeout_ms: int,
    call_site: str,
) -> Result[Any]:
    """Run one provider call under ``timeout_ms`` and parse its JSON body.

    Failures map to Timeout, MalformedResponse or UpstreamError. Cancellation
    propagates to the caller untouched.
    """
    start = time.monotonic()
    outcome = "ok"
    try:
        try:
            response = await enforce_timeout(lambda: provider.generate(request), timeout_ms)
        except (PerfTimeoutError, ProviderTimeoutError) as exc:
            outcome = "timeout"
            return Result.fail(ErrorKind.TIMEOUT, exc)
        except ProviderBadResponseError as exc:
            outcome = "malformed"
            return Result.fail(ErrorKind.MALFORMED_RESPONSE, exc)
        except OracleProviderError as exc:
            outcome = "upstream_error"
            return Result.fail(ErrorKind.UPSTREAM_ERROR, exc)

        try:
            return Result.success(extract_json(response.text))
        except json.JSONDecodeError as exc:
            outcome = "non_json"
            logger.warning("[ORACLE] non-JSON reply", extra={"call_site": call_site, "length": len(response.text or "")})
            return Result.fail(ErrorKind.MALFORMED_RESPONSE, exc)
    finally:
        structured_log(
            {
                "event": "oracle_call",
                "call_site": call_site,
                "provider": getattr(provider, "name", "unknown"),
                "model": request.model,
                "outcome": outcome,
                "latency_ms": elapsed_ms(start),
            }
        )


@dataclass(frozen=True)
class OracleReply:
    transcription: str
    message: str
    raw_action: Optional[Dict[str, Any]] = None


class IntentOracleClient:
    """Resolves one utterance against a context snapshot."""

    def __init__(
        self,
        provider: OracleProvider,
        *,
        settings: Optional[Settings] = None,
        timeout_ms: Optional[int] = None,
    ) -> None:
        s = settings or get_settings()
        self.provider = provider
        self.model = s.oracle_model
        self.temperature = s.oracle_temperature
        self.max_output_tokens = s.oracle_max_output_tokens
        self.timeout_ms = timeout_ms if timeout_ms is not None else s.voice_timeout_ms

    def build_request(self, encoded_audio: str, mime_type: str, context_xml: str) -> OracleRequest:
        return OracleRequest(
            model=self.model,
            system_instruction=VOICE_INSTRUCTIONS.format(context=context_xml),
            texts=[VOICE_USER_PROMPT],
            inline_parts=[InlinePart(mime_type=mime_type, data=encoded_audio)],
            response_schema=VOICE_RESPONSE_SCHEMA,
            schema_name="voice_response",
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
        )

    async def resolve(self, audio: bytes, mime_type: str, snapshot: ContextSnapshot) -> Result[OracleReply]:
        encoded = await asyncio.to_thread(encode_payload, audio)
        request = self.build_request(encoded, mime_type, serialize_snapshot(snapshot))

        raw = await invoke_structured(self.provider, request, timeout_ms=self.timeout_ms, call_site="voice")
        if not raw.ok:
            return Result.from_failure(raw.failure)

        try:
            payload = OracleVoicePayload.model_validate(raw.value)
        except ValidationError as exc:
            return Result.fail(ErrorKind.MALFORMED_RESPONSE, f"voice reply failed schema validation: {exc.error_count()} errors")

        raw_action = payload.action.model_dump() if payload.action is not None else None
        return Result.success(
            OracleReply(transcription=payload.transcription, message=payload.message, raw_action=raw_action)
        )


__all__ = [
    "IntentOracleClient",
    "OracleReply",
    "VOICE_INSTRUCTIONS",
    "encode_payload",
    "extract_json",
    "invoke_structured",
]
