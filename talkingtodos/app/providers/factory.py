"""Oracle provider factory driven by Settings."""

from __future__ import annotations

from typing import Optional

from talkingtodos.app.config import Settings, get_settings

from .base import OracleProvider, OracleRequest, OracleResponse
from .errors import ProviderDisabledError, ProviderMisconfiguredError
from .gemini_provider import GEMINI_BASE_URL, GeminiProvider
from .openai_compatible_provider import OpenAICompatibleProvider


class DisabledProvider(OracleProvider):
    """Stand-in used when ORACLE_PROVIDER=none; every call fails closed."""

    name = "none"

    async def generate(self, request: OracleRequest) -> OracleResponse:
        raise ProviderDisabledError("oracle calls disabled", provider=self.name)


def create_provider(settings: Optional[Settings] = None, *, timeout_seconds: float = 30.0) -> OracleProvider:
    """
    Create an oracle provider from settings.

    ``timeout_seconds`` is the transport read bound; call sites additionally
    wrap each call in their own hard deadline.

    Raises:
        ProviderMisconfiguredError: If required settings are missing
    """
    s = settings or get_settings()
    provider_type = s.oracle_provider

    if provider_type == "none":
        return DisabledProvider()

    if not s.oracle_api_key:
        raise ProviderMisconfiguredError("ORACLE_API_KEY is required", provider=provider_type)

    if provider_type == "gemini":
        return GeminiProvider(
            api_key=s.oracle_api_key,
            base_url=s.oracle_base_url or GEMINI_BASE_URL,
            timeout_seconds=timeout_seconds,
            connect_timeout_seconds=float(s.oracle_connect_timeout_seconds),
        )

    if provider_type == "openai_compat":
        if not s.oracle_base_url:
            raise ProviderMisconfiguredError("ORACLE_BASE_URL is required for openai_compat", provider=provider_type)
        return OpenAICompatibleProvider(
            api_key=s.oracle_api_key,
            base_url=s.oracle_base_url,
            timeout_seconds=timeout_seconds,
            connect_timeout_seconds=float(s.oracle_connect_timeout_seconds),
        )

    raise ProviderMisconfiguredError(
        f"Unknown ORACLE_PROVIDER: {provider_type}. Must be 'gemini', 'openai_compat' or 'none'",
        provider=provider_type,
    )


__all__ = ["DisabledProvider", "create_provider"]
