"""
Voice session state.

One ``VoiceSession`` per press-and-hold gesture. The pipeline is the only
writer; everyone else reads the properties or subscribes to state changes.
Sessions are never persisted.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, FrozenSet, List, Optional, Tuple

from talkingtodos.app.observability import structured_log

from .errors import VoiceFailure
from .schemas import Action, VoiceReply

if TYPE_CHECKING:
    from .executor import ExecutionResult

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "IDLE"
    PREPARING = "PREPARING"
    RECORDING = "RECORDING"
    PROCESSING = "PROCESSING"
    RESPONDED = "RESPONDED"
    CONFIRMING_CREATE = "CONFIRMING_CREATE"
    EXECUTING = "EXECUTING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


TERMINAL_STATES: FrozenSet[SessionState] = frozenset(
    {SessionState.COMPLETED, SessionState.FAILED, SessionState.CANCELLED}
)

TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.PREPARING}),
    SessionState.PREPARING: frozenset({SessionState.RECORDING, SessionState.FAILED}),
    SessionState.RECORDING: frozenset({SessionState.PROCESSING, SessionState.FAILED}),
    SessionState.PROCESSING: frozenset({SessionState.RESPONDED, SessionState.FAILED}),
    SessionState.RESPONDED: frozenset(
        {SessionState.CONFIRMING_CREATE, SessionState.EXECUTING, SessionState.COMPLETED, SessionState.FAILED}
    ),
    SessionState.CONFIRMING_CREATE: frozenset({SessionState.EXECUTING, SessionState.RESPONDED}),
    # Back to confirmation when synthesis fails, so the user can retry without re-recording
    SessionState.EXECUTING: frozenset(
        {SessionState.COMPLETED, SessionState.FAILED, SessionState.CONFIRMING_CREATE}
    ),
}


class InvalidTransitionError(RuntimeError):
    def __init__(self, current: SessionState, requested: SessionState) -> None:
        super().__init__(f"cannot move from {current.value} to {requested.value}")
        self.current = current
        self.requested = requested


@dataclass(frozen=True)
class DeskContext:
    """Primary/secondary list pairing for one session (cross-list linking)."""
    primary_list_id: Optional[str] = None
    secondary_list_id: Optional[str] = None


@dataclass(frozen=True)
class PendingCreate:
    action: Action
    list_id: str
    phrases: Tuple[str, ...]


StateListener = Callable[["VoiceSession"], None]


@dataclass
class VoiceSession:
    desk: DeskContext = field(default_factory=DeskContext)
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    _state: SessionState = SessionState.IDLE
    _transcription: Optional[str] = None
    _response: Optional[VoiceReply] = None
    _pending: Optional[PendingCreate] = None
    _failure: Optional[VoiceFailure] = None
    _result: Optional["ExecutionResult"] = None
    _history: List[SessionState] = field(default_factory=lambda: [SessionState.IDLE])
    _listeners: List[StateListener] = field(default_factory=list, repr=False)

    # ------------------------
    # Read side
    # ------------------------
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def transcription(self) -> Optional[str]:
        return self._transcription

    @property
    def response(self) -> Optional[VoiceReply]:
        return self._response

    @property
    def pending_confirmation(self) -> Optional[PendingCreate]:
        return self._pending

    @property
    def failure(self) -> Optional[VoiceFailure]:
        return self._failure

    @property
    def result(self) -> Optional["ExecutionResult"]:
        return self._result

    @property
    def history(self) -> Tuple[SessionState, ...]:
        return tuple(self._history)

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def is_live(self) -> bool:
        return not self.is_terminal

    @property
    def mutated_count(self) -> int:
        return self._result.mutated_count if self._result is not None else 0

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------
    # Write side (pipeline only)
    # ------------------------
    def transition(self, state: SessionState) -> None:
        if state is SessionState.CANCELLED:
            if self.is_terminal:
                raise InvalidTransitionError(self._state, state)
        elif state not in TRANSITIONS.get(self._state, frozenset()):
            raise InvalidTransitionError(self._state, state)

        previous = self._state
        self._state = state
        self._history.append(state)
        structured_log(
            {
                "event": "voice_session_transition",
                "session_id": self.session_id,
                "from": previous.value,
                "to": state.value,
                "failure_kind": self._failure.kind.value if self._failure else None,
            }
        )
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as exc:  # noqa: BLE001
                logger.warning("[SESSION] listener failed", exc_info=exc)

    def fail(self, failure: VoiceFailure) -> None:
        self._failure = failure
        self._pending = None
        self.transition(SessionState.FAILED)

    def set_reply(self, transcription: str, reply: VoiceReply) -> None:
        self._transcription = transcription
        self._response = reply

    def set_transcription(self, transcription: str, message: str) -> None:
        """Keep what was heard even when the action is rejected."""
        self._transcription = transcription
        self._response = VoiceReply(message=message, action=None)

    def set_pending(self, pending: Optional[PendingCreate]) -> None:
        self._pending = pending

    def note_failure(self, failure: Optional[VoiceFailure]) -> None:
        self._failure = failure

    def set_result(self, result: "ExecutionResult") -> None:
        self._result = result


__all__ = [
    "DeskContext",
    "InvalidTransitionError",
    "PendingCreate",
    "SessionState",
    "TERMINAL_STATES",
    "TRANSITIONS",
    "VoiceSession",
]
