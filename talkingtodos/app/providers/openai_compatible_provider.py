"""OpenAI-compatible chat-completions provider (audio via input_audio parts)."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx

from .base import InlinePart, OracleProvider, OracleRequest, OracleResponse
from .errors import (
    ProviderBadResponseError,
    ProviderMisconfiguredError,
    ProviderTimeoutError,
    ProviderUpstreamError,
)

# input_audio only understands a short format name, not a MIME type
_AUDIO_FORMATS = {
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/m4a": "m4a",
    "audio/mp4": "m4a",
    "audio/webm": "webm",
}


def _content_part(part: InlinePart) -> Dict[str, Any]:
    if part.mime_type.startswith("audio/"):
        fmt = _AUDIO_FORMATS.get(part.mime_type, part.mime_type.split("/", 1)[1])
        return {"type": "input_audio", "input_audio": {"data": part.data, "format": fmt}}
    return {"type": "image_url", "image_url": {"url": f"data:{part.mime_type};base64,{part.data}"}}


class OpenAICompatibleProvider(OracleProvider):
    """Provider for any endpoint speaking the chat-completions dialect."""

    name = "openai_compat"

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout_seconds: float = 30.0,
        connect_timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url:
            raise ProviderMisconfiguredError("base_url is required for openai_compat", provider=self.name)
        self.api_key = api_key
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self.connect_timeout_seconds = connect_timeout_seconds
        self.transport = transport

    def _payload(self, request: OracleRequest) -> Dict[str, Any]:
        content: List[Dict[str, Any]] = [_content_part(part) for part in request.inline_parts]
        content.extend({"type": "text", "text": text} for text in request.texts)

        payload: Dict[str, Any] = {
            "model": request.model,
            "messages": [
                {"role": "system", "content": request.system_instruction},
                {"role": "user", "content": content},
            ],
            "temperature": request.temperature,
        }
        if request.max_output_tokens:
            payload["max_tokens"] = request.max_output_tokens
        if request.response_schema:
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": request.schema_name, "schema": request.response_schema},
            }
        else:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def generate(self, request: OracleRequest) -> OracleResponse:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        timeout = httpx.Timeout(self.timeout_seconds, connect=self.connect_timeout_seconds)

        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                resp = await client.post(
                    self.base_url,
                    headers=headers,
                    json=self._payload(request),
                    timeout=timeout,
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError("Provider request timeout", provider=self.name, original_error=exc) from exc
        except httpx.HTTPStatusError as exc:
            raise ProviderUpstreamError(
                f"Provider HTTP {exc.response.status_code}",
                provider=self.name,
                original_error=exc,
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderUpstreamError("Provider transport error", provider=self.name, original_error=exc) from exc
        except json.JSONDecodeError as exc:
            raise ProviderBadResponseError("Provider returned invalid JSON", provider=self.name, original_error=exc) from exc

        try:
            choice = data["choices"][0]
            text = choice["message"]["content"]
            if text is not None and not isinstance(text, str):
                raise TypeError(f"content is {type(text).__name__}, expected string")
            finish_reason = choice.get("finish_reason")
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise ProviderBadResponseError(
                f"Provider response missing expected fields: {exc}",
                provider=self.name,
                original_error=exc,
            ) from exc

        return OracleResponse(text=text or "", raw=data, finish_reason=finish_reason)


__all__ = ["OpenAICompatibleProvider"]
