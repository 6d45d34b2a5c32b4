"""Oracle provider abstraction so the voice pipeline can switch reasoning services."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class InlinePart:
    """Binary payload (audio or image) already base64 encoded."""
    mime_type: str
    data: str


@dataclass
class OracleRequest:
    """Unified request format for all oracle providers."""
    model: str
    system_instruction: str
    texts: List[str] = field(default_factory=list)
    inline_parts: List[InlinePart] = field(default_factory=list)
    response_schema: Optional[Dict[str, Any]] = None
    schema_name: str = "response"
    temperature: float = 0.7
    max_output_tokens: Optional[int] = None


@dataclass
class OracleResponse:
    """Unified response format from oracle providers."""
    text: str
    raw: Optional[Dict[str, Any]] = None
    finish_reason: Optional[str] = None


class OracleProvider(ABC):
    """Abstract base class for oracle providers."""

    name: str = "abstract"

    @abstractmethod
    async def generate(self, request: OracleRequest) -> OracleResponse:
        """
        Execute one structured-output generation.

        Args:
            request: Unified oracle request

        Returns:
            OracleResponse carrying the raw text the service produced

        Raises:
            OracleProviderError: On transport or service errors
        """


__all__ = ["InlinePart", "OracleProvider", "OracleRequest", "OracleResponse"]
