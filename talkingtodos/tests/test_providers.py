from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from talkingtodos.app.providers import (
    DisabledProvider,
    GeminiProvider,
    InlinePart,
    OpenAICompatibleProvider,
    OracleRequest,
    ProviderBadResponseError,
    ProviderDisabledError,
    ProviderMisconfiguredError,
    ProviderTimeoutError,
    ProviderUpstreamError,
    create_provider,
)
from talkingtodos.app.providers.gemini_provider import to_gemini_schema
from talkingtodos.app.voice.schemas import VOICE_RESPONSE_SCHEMA
from talkingtodos.tests._fakes import make_settings


def _request(**overrides):
    values = dict(
        model="gemini-2.5-flash",
        system_instruction="be helpful",
        texts=["hello"],
        inline_parts=[InlinePart(mime_type="audio/m4a", data="AAAA")],
        response_schema=VOICE_RESPONSE_SCHEMA,
        max_output_tokens=256,
    )
    values.update(overrides)
    return OracleRequest(**values)


def _gemini_body(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}, "finishReason": "STOP"}]}


class TestGemini:
    def test_posts_generate_content(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=_gemini_body('{"transcription": "x", "message": "y"}'))

        provider = GeminiProvider(api_key="AIzaTEST", transport=httpx.MockTransport(handler))
        response = asyncio.run(provider.generate(_request()))

        assert response.text == '{"transcription": "x", "message": "y"}'
        assert response.finish_reason == "STOP"
        assert "/models/gemini-2.5-flash:generateContent" in captured["url"]
        assert "key=AIzaTEST" in captured["url"]
        body = captured["body"]
        assert body["systemInstruction"]["parts"][0]["text"] == "be helpful"
        parts = body["contents"][0]["parts"]
        assert parts[0] == {"inlineData": {"mimeType": "audio/m4a", "data": "AAAA"}}
        assert parts[1] == {"text": "hello"}
        config = body["generationConfig"]
        assert config["responseMimeType"] == "application/json"
        assert config["responseSchema"]["type"] == "OBJECT"
        assert config["maxOutputTokens"] == 256

    def test_http_error_is_upstream(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503, json={"error": "busy"}))
        provider = GeminiProvider(api_key="k", transport=transport)
        with pytest.raises(ProviderUpstreamError):
            asyncio.run(provider.generate(_request()))

    def test_timeout_is_provider_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        provider = GeminiProvider(api_key="k", transport=httpx.MockTransport(handler))
        with pytest.raises(ProviderTimeoutError):
            asyncio.run(provider.generate(_request()))

    def test_blocked_prompt_is_upstream(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}}))
        provider = GeminiProvider(api_key="k", transport=transport)
        with pytest.raises(ProviderUpstreamError, match="SAFETY"):
            asyncio.run(provider.generate(_request()))

    def test_missing_candidates_is_bad_response(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"candidates": []}))
        provider = GeminiProvider(api_key="k", transport=transport)
        with pytest.raises(ProviderBadResponseError):
            asyncio.run(provider.generate(_request()))

    def test_non_json_envelope_is_bad_response(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"<html>"))
        provider = GeminiProvider(api_key="k", transport=transport)
        with pytest.raises(ProviderBadResponseError):
            asyncio.run(provider.generate(_request()))

    @pytest.mark.parametrize(
        "body",
        [
            [],
            {"promptFeedback": "odd", "candidates": [{"content": {"parts": "text"}}]},
            {"candidates": [{"content": {"parts": ["plain string"]}}]},
            {"candidates": ["not an object"]},
        ],
    )
    def test_wrong_shaped_envelope_is_bad_response(self, body):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
        provider = GeminiProvider(api_key="k", transport=transport)
        with pytest.raises(ProviderBadResponseError):
            asyncio.run(provider.generate(_request()))

    def test_missing_key_is_misconfigured(self):
        with pytest.raises(ProviderMisconfiguredError):
            GeminiProvider(api_key="")


def test_gemini_schema_conversion():
    converted = to_gemini_schema(
        {"type": "object", "additionalProperties": False, "properties": {"xs": {"type": "array", "items": {"type": "string"}}}}
    )
    assert converted == {"type": "OBJECT", "properties": {"xs": {"type": "ARRAY", "items": {"type": "STRING"}}}}


class TestOpenAICompatible:
    def test_audio_and_schema_payload(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["auth"] = request.headers.get("authorization")
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": "{}"}, "finish_reason": "stop"}]})

        provider = OpenAICompatibleProvider(
            api_key="sk-test", base_url="https://llm.local/v1/chat/completions", transport=httpx.MockTransport(handler)
        )
        response = asyncio.run(provider.generate(_request()))

        assert response.text == "{}"
        assert captured["auth"] == "Bearer sk-test"
        user = captured["body"]["messages"][1]["content"]
        assert user[0] == {"type": "input_audio", "input_audio": {"data": "AAAA", "format": "m4a"}}
        assert captured["body"]["response_format"]["type"] == "json_schema"
        assert captured["body"]["max_tokens"] == 256

    def test_image_parts_use_data_urls(self):
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": "{}"}}]})

        provider = OpenAICompatibleProvider(api_key="k", base_url="https://llm.local", transport=httpx.MockTransport(handler))
        asyncio.run(provider.generate(_request(inline_parts=[InlinePart(mime_type="image/png", data="QUJD")])))

        part = captured["body"]["messages"][1]["content"][0]
        assert part == {"type": "image_url", "image_url": {"url": "data:image/png;base64,QUJD"}}

    def test_missing_choices_is_bad_response(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"choices": []}))
        provider = OpenAICompatibleProvider(api_key="k", base_url="https://llm.local", transport=transport)
        with pytest.raises(ProviderBadResponseError):
            asyncio.run(provider.generate(_request()))

    @pytest.mark.parametrize(
        "body",
        [
            [],
            {"choices": [{"message": {"content": [{"type": "text", "text": "{}"}]}}]},
            {"choices": [{"message": "hello"}]},
        ],
    )
    def test_wrong_shaped_envelope_is_bad_response(self, body):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
        provider = OpenAICompatibleProvider(api_key="k", base_url="https://llm.local", transport=transport)
        with pytest.raises(ProviderBadResponseError):
            asyncio.run(provider.generate(_request()))


class TestFactory:
    def test_none_is_disabled(self):
        provider = create_provider(make_settings(oracle_provider="none"))
        assert isinstance(provider, DisabledProvider)
        with pytest.raises(ProviderDisabledError):
            asyncio.run(provider.generate(_request()))

    def test_gemini_default(self):
        provider = create_provider(make_settings(oracle_provider="gemini", oracle_api_key="k"))
        assert isinstance(provider, GeminiProvider)

    def test_openai_compat_requires_base_url(self):
        with pytest.raises(ProviderMisconfiguredError):
            create_provider(make_settings(oracle_provider="openai_compat", oracle_api_key="k"))
        provider = create_provider(
            make_settings(oracle_provider="openai_compat", oracle_api_key="k", oracle_base_url="https://llm.local")
        )
        assert isinstance(provider, OpenAICompatibleProvider)

    def test_missing_key_and_unknown_provider(self):
        with pytest.raises(ProviderMisconfiguredError):
            create_provider(make_settings(oracle_provider="gemini", oracle_api_key=None))
        with pytest.raises(ProviderMisconfiguredError):
            create_provider(make_settings(oracle_provider="mystery", oracle_api_key="k"))
