from .base import InlinePart, OracleProvider, OracleRequest, OracleResponse
from .errors import (
    OracleProviderError,
    ProviderBadResponseError,
    ProviderDisabledError,
    ProviderMisconfiguredError,
    ProviderTimeoutError,
    ProviderUpstreamError,
)
from .factory import DisabledProvider, create_provider
from .gemini_provider import GeminiProvider
from .openai_compatible_provider import OpenAICompatibleProvider

__all__ = [
    "InlinePart",
    "OracleProvider",
    "OracleRequest",
    "OracleResponse",
    "OracleProviderError",
    "ProviderBadResponseError",
    "ProviderDisabledError",
    "ProviderMisconfiguredError",
    "ProviderTimeoutError",
    "ProviderUpstreamError",
    "DisabledProvider",
    "create_provider",
    "GeminiProvider",
    "OpenAICompatibleProvider",
]
