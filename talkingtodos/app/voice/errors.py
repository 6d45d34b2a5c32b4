"""Failure taxonomy and the Result carrier used across the voice pipeline.

Components report failure by value: every async stage returns a ``Result``
whose ``failure`` names an ``ErrorKind``. Only cancellation and programming
errors propagate as exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

from talkingtodos.app.config.redaction import safe_error_detail

T = TypeVar("T")


class ErrorKind(str, Enum):
    PERMISSION_DENIED = "PermissionDenied"
    TOO_SHORT = "TooShort"
    PAYLOAD_TOO_LARGE = "PayloadTooLarge"
    CORRUPT_CAPTURE = "CorruptCapture"
    TIMEOUT = "Timeout"
    MALFORMED_RESPONSE = "MalformedResponse"
    UPSTREAM_ERROR = "UpstreamError"
    UNSUPPORTED_ACTION_TYPE = "UnsupportedActionType"
    UNRESOLVED_TARGET = "UnresolvedTarget"
    EMPTY_CREATE_REQUEST = "EmptyCreateRequest"
    SYNTHESIS_FAILURE = "SynthesisFailure"
    STORE_WRITE_FAILURE = "StoreWriteFailure"
    NOT_IMPLEMENTED = "NotImplemented"


CAPTURE_ERRORS = frozenset(
    {ErrorKind.PERMISSION_DENIED, ErrorKind.TOO_SHORT, ErrorKind.PAYLOAD_TOO_LARGE, ErrorKind.CORRUPT_CAPTURE}
)
ORACLE_ERRORS = frozenset({ErrorKind.TIMEOUT, ErrorKind.MALFORMED_RESPONSE, ErrorKind.UPSTREAM_ERROR})
VALIDATION_ERRORS = frozenset(
    {ErrorKind.UNSUPPORTED_ACTION_TYPE, ErrorKind.UNRESOLVED_TARGET, ErrorKind.EMPTY_CREATE_REQUEST}
)


USER_MESSAGES = {
    ErrorKind.PERMISSION_DENIED: "Microphone access is needed to use voice commands.",
    ErrorKind.TOO_SHORT: "That was too quick. Hold the button while you speak.",
    ErrorKind.PAYLOAD_TOO_LARGE: "That recording was too long. Try a shorter command.",
    ErrorKind.CORRUPT_CAPTURE: "I couldn't hear anything. Please try again.",
    ErrorKind.TIMEOUT: "That took too long to process. Please try again.",
    ErrorKind.MALFORMED_RESPONSE: "I couldn't understand the response. Please try again.",
    ErrorKind.UPSTREAM_ERROR: "The voice service is unavailable right now.",
    ErrorKind.UNSUPPORTED_ACTION_TYPE: "I heard you, but I can't do that yet.",
    ErrorKind.UNRESOLVED_TARGET: "I heard you, but I couldn't find that list.",
    ErrorKind.EMPTY_CREATE_REQUEST: "I heard you, but I didn't catch anything to add.",
    ErrorKind.SYNTHESIS_FAILURE: "I couldn't prepare those items. You can try again.",
    ErrorKind.STORE_WRITE_FAILURE: "Saving those items failed. Nothing was changed.",
    ErrorKind.NOT_IMPLEMENTED: "I heard you, but that isn't supported yet.",
}


@dataclass(frozen=True)
class VoiceFailure:
    kind: ErrorKind
    user_message: str
    detail: str = ""

    @property
    def retryable(self) -> bool:
        """Capture and oracle failures invite a fresh, user-initiated session."""
        return self.kind in CAPTURE_ERRORS or self.kind in ORACLE_ERRORS


def build_failure(
    kind: ErrorKind,
    detail: BaseException | str = "",
    *,
    user_message: Optional[str] = None,
) -> VoiceFailure:
    return VoiceFailure(
        kind=kind,
        user_message=user_message or USER_MESSAGES[kind],
        detail=safe_error_detail(detail) if detail else "",
    )


@dataclass(frozen=True)
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    failure: Optional[VoiceFailure] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(ok=True, value=value)

    @classmethod
    def fail(cls, kind: ErrorKind, detail: BaseException | str = "", *, user_message: Optional[str] = None) -> "Result[T]":
        return cls(ok=False, failure=build_failure(kind, detail, user_message=user_message))

    @classmethod
    def from_failure(cls, failure: VoiceFailure) -> "Result[T]":
        return cls(ok=False, failure=failure)


__all__ = [
    "ErrorKind",
    "VoiceFailure",
    "Result",
    "build_failure",
    "USER_MESSAGES",
    "CAPTURE_ERRORS",
    "ORACLE_ERRORS",
    "VALIDATION_ERRORS",
]
