"""Gemini generateContent provider."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx

from .base import OracleProvider, OracleRequest, OracleResponse
from .errors import (
    ProviderBadResponseError,
    ProviderMisconfiguredError,
    ProviderTimeoutError,
    ProviderUpstreamError,
)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

SAFETY_SETTINGS = [
    {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]


def to_gemini_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a JSON-schema subset to Gemini's OpenAPI flavour (upper-case types)."""
    converted: Dict[str, Any] = {}
    for key, value in schema.items():
        if key == "type" and isinstance(value, str):
            converted[key] = value.upper()
        elif key == "properties" and isinstance(value, dict):
            converted[key] = {name: to_gemini_schema(sub) for name, sub in value.items()}
        elif key == "items" and isinstance(value, dict):
            converted[key] = to_gemini_schema(value)
        elif key == "additionalProperties":
            continue
        else:
            converted[key] = value
    return converted


class GeminiProvider(OracleProvider):
    """Gemini REST provider implementation."""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        base_url: str = GEMINI_BASE_URL,
        timeout_seconds: float = 30.0,
        connect_timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ProviderMisconfiguredError("Gemini api key missing", provider=self.name)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.connect_timeout_seconds = connect_timeout_seconds
        self.transport = transport

    def _payload(self, request: OracleRequest) -> Dict[str, Any]:
        parts: List[Dict[str, Any]] = [
            {"inlineData": {"mimeType": part.mime_type, "data": part.data}} for part in request.inline_parts
        ]
        parts.extend({"text": text} for text in request.texts)

        generation_config: Dict[str, Any] = {
            "temperature": request.temperature,
            "responseMimeType": "application/json",
        }
        if request.max_output_tokens:
            generation_config["maxOutputTokens"] = request.max_output_tokens
        if request.response_schema:
            generation_config["responseSchema"] = to_gemini_schema(request.response_schema)

        return {
            "systemInstruction": {"parts": [{"text": request.system_instruction}]},
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": generation_config,
            "safetySettings": SAFETY_SETTINGS,
        }

    async def generate(self, request: OracleRequest) -> OracleResponse:
        url = f"{self.base_url}/models/{request.model}:generateContent"
        timeout = httpx.Timeout(self.timeout_seconds, connect=self.connect_timeout_seconds)

        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                resp = await client.post(
                    url,
                    params={"key": self.api_key},
                    headers={"Content-Type": "application/json"},
                    json=self._payload(request),
                    timeout=timeout,
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError("Gemini request timeout", provider=self.name, original_error=exc) from exc
        except httpx.HTTPStatusError as exc:
            raise ProviderUpstreamError(
                f"Gemini HTTP {exc.response.status_code}",
                provider=self.name,
                original_error=exc,
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderUpstreamError("Gemini transport error", provider=self.name, original_error=exc) from exc
        except json.JSONDecodeError as exc:
            raise ProviderBadResponseError("Gemini returned invalid JSON", provider=self.name, original_error=exc) from exc

        if not isinstance(data, dict):
            raise ProviderBadResponseError("Gemini response is not an object", provider=self.name)

        feedback = data.get("promptFeedback")
        block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
        if block_reason:
            raise ProviderUpstreamError(f"Gemini blocked prompt: {block_reason}", provider=self.name)

        try:
            candidate = data["candidates"][0]
            parts = candidate["content"]["parts"]
            if not isinstance(parts, list) or not all(isinstance(part, dict) for part in parts):
                raise TypeError("parts is not a list of objects")
            text = "".join(str(part.get("text") or "") for part in parts)
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise ProviderBadResponseError(
                f"Gemini response missing expected fields: {exc}",
                provider=self.name,
                original_error=exc,
            ) from exc

        return OracleResponse(text=text, raw=data, finish_reason=candidate.get("finishReason"))


__all__ = ["GeminiProvider", "GEMINI_BASE_URL", "to_gemini_schema"]
