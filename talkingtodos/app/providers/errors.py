from __future__ import annotations

from typing import Optional


class OracleProviderError(Exception):
    """Base exception for oracle provider errors."""

    def __init__(self, message: str, provider: str = "unknown", original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.provider = provider
        self.original_error = original_error


class ProviderDisabledError(OracleProviderError):
    """Raised when oracle calls are disabled (ORACLE_PROVIDER=none)."""


class ProviderMisconfiguredError(OracleProviderError):
    """Raised when provider configuration is missing or invalid."""


class ProviderTimeoutError(OracleProviderError):
    """Raised when the transport itself times out."""


class ProviderUpstreamError(OracleProviderError):
    """Raised for HTTP failures and errors declared by the service."""


class ProviderBadResponseError(OracleProviderError):
    """Raised when the service answers but the envelope is unusable."""


__all__ = [
    "OracleProviderError",
    "ProviderDisabledError",
    "ProviderMisconfiguredError",
    "ProviderTimeoutError",
    "ProviderUpstreamError",
    "ProviderBadResponseError",
]
