"""
Collaborator-facing voice assistant.

UI code talks to this facade only. It owns one ``VoicePipeline`` and enforces
the single-session rule: a new gesture cannot begin while the previous
session is still live.
"""

from __future__ import annotations

import logging
from typing import Optional

from talkingtodos.app.config import Settings, get_settings
from talkingtodos.app.providers import OracleProvider

from .capture import AudioRecorder, GrantedPermissions, PermissionGate
from .executor import ActionExecutor
from .oracle import IntentOracleClient
from .pipeline import VoicePipeline
from .session import DeskContext, VoiceSession
from .store import Store
from .synthesizer import TodoSynthesizer

logger = logging.getLogger(__name__)


class SessionActiveError(RuntimeError):
    def __init__(self, session_id: str) -> None:
        super().__init__("a voice session is already in progress")
        self.session_id = session_id


class VoiceAssistant:
    def __init__(self, pipeline: VoicePipeline) -> None:
        self.pipeline = pipeline

    @classmethod
    def build(
        cls,
        *,
        store: Store,
        provider: OracleProvider,
        recorder: AudioRecorder,
        permissions: Optional[PermissionGate] = None,
        settings: Optional[Settings] = None,
        **pipeline_kwargs,
    ) -> "VoiceAssistant":
        s = settings or get_settings()
        synthesizer = TodoSynthesizer(provider, settings=s)
        pipeline = VoicePipeline(
            store=store,
            oracle=IntentOracleClient(provider, settings=s),
            executor=ActionExecutor(store, synthesizer, sample_size=s.synthesis_sample_size),
            recorder=recorder,
            permissions=permissions or GrantedPermissions(),
            settings=s,
            **pipeline_kwargs,
        )
        return cls(pipeline)

    @property
    def session(self) -> Optional[VoiceSession]:
        return self.pipeline.session

    async def start_voice_session(self, desk: Optional[DeskContext] = None) -> VoiceSession:
        current = self.pipeline.session
        if current is not None and current.is_live:
            logger.info("[VOICE] rejected overlapping session", extra={"session_id": current.session_id})
            raise SessionActiveError(current.session_id)
        return await self.pipeline.start_session(desk)

    async def stop_voice_session(self) -> VoiceSession:
        return await self.pipeline.stop_session()

    async def confirm_pending_create(self) -> VoiceSession:
        return await self.pipeline.confirm_pending_create()

    async def reject_pending_create(self) -> VoiceSession:
        return await self.pipeline.reject_pending_create()

    async def cancel_session(self) -> Optional[VoiceSession]:
        return await self.pipeline.cancel_session()


__all__ = ["SessionActiveError", "VoiceAssistant"]
