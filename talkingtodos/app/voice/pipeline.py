"""
Voice command pipeline: the state machine behind one press-and-hold gesture.

    IDLE -> PREPARING -> RECORDING -> PROCESSING -> RESPONDED
         -> (CONFIRMING_CREATE) -> EXECUTING -> COMPLETED | FAILED

Any non-terminal state may move to CANCELLED. Stages run strictly in order;
the pipeline suspends only at the permission request, the recorder, the store
read/write and the oracle calls. Every suspension is a cancellable task, and
the session is re-checked after each one so a late result is discarded rather
than applied. A stage that raises fails the session instead of leaving it live.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from talkingtodos.app.config import Settings, get_settings

from .capture import AudioRecorder, PermissionGate
from .errors import ErrorKind, Result, VoiceFailure, build_failure
from .executor import ActionExecutor, ExecutionResult
from .oracle import IntentOracleClient
from .schemas import Action, ActionType, VoiceReply
from .session import TRANSITIONS, DeskContext, InvalidTransitionError, PendingCreate, SessionState, VoiceSession
from .snapshot import build_snapshot
from .store import Store
from .validator import ActionValidator

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _SessionCancelled(Exception):
    """Internal signal: the session was cancelled while a stage was suspended."""


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class VoicePipeline:
    def __init__(
        self,
        *,
        store: Store,
        oracle: IntentOracleClient,
        executor: ActionExecutor,
        recorder: AudioRecorder,
        permissions: PermissionGate,
        validator: Optional[ActionValidator] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = _monotonic_ms,
    ) -> None:
        s = settings or get_settings()
        self.store = store
        self.oracle = oracle
        self.executor = executor
        self.recorder = recorder
        self.permissions = permissions
        self.validator = validator or ActionValidator()
        self.min_recording_ms = s.min_recording_ms
        self.max_audio_bytes = s.max_audio_bytes
        self.min_audio_bytes = s.min_audio_bytes
        self._clock = clock
        self._session: Optional[VoiceSession] = None
        self._inflight: Optional[asyncio.Future] = None
        self._recording_started_ms: Optional[float] = None

    @property
    def session(self) -> Optional[VoiceSession]:
        return self._session

    # ------------------------
    # Collaborator-facing operations
    # ------------------------
    async def start_session(self, desk: Optional[DeskContext] = None) -> VoiceSession:
        session = VoiceSession(desk=desk or DeskContext())
        self._session = session
        session.transition(SessionState.PREPARING)
        try:
            granted = await self._guard(session, self.permissions.request_recording_permission())
            if not granted:
                session.fail(build_failure(ErrorKind.PERMISSION_DENIED, "recording permission not granted"))
                return session

            try:
                await self._guard(session, self.recorder.start())
            except _SessionCancelled:
                raise
            except Exception as exc:  # noqa: BLE001
                session.fail(build_failure(ErrorKind.CORRUPT_CAPTURE, exc))
                return session

            self._recording_started_ms = self._clock()
            session.transition(SessionState.RECORDING)
        except _SessionCancelled:
            pass
        return session

    async def stop_session(self) -> VoiceSession:
        session = self._require(SessionState.RECORDING)
        try:
            await self._process(session)
        except _SessionCancelled:
            logger.info("[VOICE] session cancelled during processing", extra={"session_id": session.session_id})
        except Exception as exc:  # noqa: BLE001
            self._fail_unexpected(session, exc)
        return session

    async def confirm_pending_create(self) -> VoiceSession:
        session = self._require(SessionState.CONFIRMING_CREATE)
        pending = session.pending_confirmation
        session.note_failure(None)
        session.set_pending(None)
        try:
            await self._execute(session, pending.action, pending)
        except _SessionCancelled:
            logger.info("[VOICE] session cancelled during execution", extra={"session_id": session.session_id})
        except Exception as exc:  # noqa: BLE001
            self._fail_unexpected(session, exc)
        return session

    async def reject_pending_create(self) -> VoiceSession:
        session = self._require(SessionState.CONFIRMING_CREATE)
        session.set_pending(None)
        session.transition(SessionState.RESPONDED)
        session.set_result(ExecutionResult(action_type=ActionType.CREATE_TODO, mutated_count=0))
        session.transition(SessionState.COMPLETED)
        return session

    async def cancel_session(self) -> Optional[VoiceSession]:
        session = self._session
        if session is None or session.is_terminal:
            return session

        was_capturing = session.state in (SessionState.PREPARING, SessionState.RECORDING)
        session.set_pending(None)
        session.transition(SessionState.CANCELLED)
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        if was_capturing:
            await self.recorder.discard()
        return session

    # ------------------------
    # Stages
    # ------------------------
    async def _process(self, session: VoiceSession) -> None:
        try:
            audio = await self._guard(session, self.recorder.stop())
        except _SessionCancelled:
            raise
        except Exception as exc:  # noqa: BLE001
            session.fail(build_failure(ErrorKind.CORRUPT_CAPTURE, exc))
            return

        duration_ms = self._clock() - (self._recording_started_ms or 0.0)
        capture_failure = self._check_capture(duration_ms, audio.size)
        if capture_failure is not None:
            session.fail(capture_failure)
            return

        session.transition(SessionState.PROCESSING)
        lists, todos = await self._guard(session, self.store.read_tables())
        snapshot = build_snapshot(lists, todos)

        resolved = await self._guard(session, self.oracle.resolve(audio.data, audio.mime_type, snapshot))
        if not resolved.ok:
            session.fail(resolved.failure)
            return

        reply = resolved.value
        if reply.raw_action is None:
            session.set_reply(reply.transcription, VoiceReply(message=reply.message))
            session.transition(SessionState.RESPONDED)
            session.transition(SessionState.COMPLETED)
            return

        validated = self.validator.validate(reply.raw_action, snapshot, session.desk)
        if not validated.ok:
            # Show what was heard even though nothing can be done with it
            session.set_transcription(reply.transcription, reply.message)
            session.fail(validated.failure)
            return

        action = validated.value
        session.set_reply(reply.transcription, VoiceReply(message=reply.message, action=action))
        session.transition(SessionState.RESPONDED)

        if action.type is ActionType.CREATE_TODO:
            session.set_pending(PendingCreate(action=action, list_id=action.target, phrases=tuple(action.phrases)))
            session.transition(SessionState.CONFIRMING_CREATE)
            return

        await self._execute(session, action, None)

    async def _execute(self, session: VoiceSession, action: Action, pending: Optional[PendingCreate]) -> None:
        session.transition(SessionState.EXECUTING)
        outcome: Result[ExecutionResult] = await self._guard(session, self.executor.execute(action, session))

        if outcome.ok:
            session.set_result(outcome.value)
            session.transition(SessionState.COMPLETED)
            return

        if outcome.failure.kind is ErrorKind.SYNTHESIS_FAILURE and pending is not None:
            session.note_failure(outcome.failure)
            session.set_pending(pending)
            session.transition(SessionState.CONFIRMING_CREATE)
            return

        session.fail(outcome.failure)

    # ------------------------
    # Helpers
    # ------------------------
    def _check_capture(self, duration_ms: float, size: int) -> Optional[VoiceFailure]:
        if duration_ms < self.min_recording_ms:
            return build_failure(ErrorKind.TOO_SHORT, f"recording lasted {int(duration_ms)} ms")
        if size > self.max_audio_bytes:
            return build_failure(ErrorKind.PAYLOAD_TOO_LARGE, f"audio is {size} bytes")
        if size < self.min_audio_bytes:
            return build_failure(ErrorKind.CORRUPT_CAPTURE, f"audio is {size} bytes")
        return None

    def _fail_unexpected(self, session: VoiceSession, exc: Exception) -> None:
        logger.exception(
            "[VOICE] stage raised",
            extra={"session_id": session.session_id, "state": session.state.value},
        )
        if session.is_terminal:
            return
        if SessionState.FAILED not in TRANSITIONS.get(session.state, frozenset()):
            raise exc
        session.fail(build_failure(ErrorKind.UPSTREAM_ERROR, exc))

    def _require(self, state: SessionState) -> VoiceSession:
        session = self._session
        if session is None:
            raise InvalidTransitionError(SessionState.IDLE, state)
        if session.state is not state:
            raise InvalidTransitionError(session.state, state)
        return session

    async def _guard(self, session: VoiceSession, awaitable: Awaitable[T]) -> T:
        task = asyncio.ensure_future(awaitable)
        self._inflight = task
        try:
            value = await task
        except asyncio.CancelledError:
            if session.state is SessionState.CANCELLED:
                raise _SessionCancelled() from None
            raise
        finally:
            if self._inflight is task:
                self._inflight = None
        if session.state is SessionState.CANCELLED:
            raise _SessionCancelled()
        return value


__all__ = ["VoicePipeline"]
