from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Iterable, List, Optional, Union

from talkingtodos.app.config import Settings
from talkingtodos.app.providers import OracleProvider, OracleRequest, OracleResponse
from talkingtodos.app.voice import CapturedAudio, InMemoryStore
from talkingtodos.app.voice.capture import AudioRecorder, PermissionGate

Scripted = Union[str, dict, BaseException, Callable[[OracleRequest], Any]]


def make_settings(**overrides) -> Settings:
    values = dict(
        oracle_provider="none",
        oracle_model="test-model",
        voice_timeout_ms=1_000,
        template_timeout_ms=1_000,
        synthesis_timeout_ms=1_000,
    photo_timeout_ms=1_000,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeProvider(OracleProvider):
    """Replays scripted replies in order and records every request."""

    name = "fake"

    def __init__(self, replies: Iterable[Scripted]):
        self._replies = iter(replies)
        self.requests: List[OracleRequest] = []

    async def generate(self, request: OracleRequest) -> OracleResponse:
        self.requests.append(request)
        item = next(self._replies)
        if callable(item) and not isinstance(item, BaseException):
            item = item(request)
            if asyncio.iscoroutine(item):
                item = await item
        if isinstance(item, BaseException):
            raise item
        text = item if isinstance(item, str) else json.dumps(item)
        return OracleResponse(text=text)


class HangingProvider(OracleProvider):
    """Never answers until released; used for timeout and cancellation."""

    name = "hanging"

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.cancelled = False
        self.calls = 0

    async def generate(self, request: OracleRequest) -> OracleResponse:
        self.calls += 1
        self.started.set()
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return OracleResponse(text="{}")


class FakeRecorder(AudioRecorder):
    def __init__(self, data: bytes = b"\x01" * 4096, mime_type: str = "audio/m4a", error: Optional[Exception] = None):
        self.data = data
        self.mime_type = mime_type
        self.error = error
        self.started = False
        self.stopped = False
        self.discarded = False

    async def start(self) -> None:
        if self.error is not None:
            raise self.error
        self.started = True

    async def stop(self) -> CapturedAudio:
        self.stopped = True
        return CapturedAudio(data=self.data, mime_type=self.mime_type)

    async def discard(self) -> None:
        self.discarded = True


class FakePermissions(PermissionGate):
    def __init__(self, granted: bool = True):
        self.granted = granted
        self.asked = 0

    async def request_recording_permission(self) -> bool:
        self.asked += 1
        return self.granted


class FakeClock:
    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


def seeded_store(store_cls=InMemoryStore) -> InMemoryStore:
    counter = iter(range(1, 1000))
    store = store_cls(id_factory=lambda: f"new-{next(counter)}")
    store.set_list("groceries", {"name": "Groceries", "purpose": "Food to buy", "template": "shopping"})
    store.set_list("books", {"name": "Books", "purpose": "Reading list", "code": "<huge/>"})
    store.set_todo("t1", {"text": "Milk", "done": False, "list": "groceries"})
    store.set_todo("t2", {"text": "Dune", "done": True, "list": "books"})
    return store


def voice_reply(transcription: str, message: str, action: Optional[dict] = None) -> dict:
    body: dict = {"transcription": transcription, "message": message}
    if action is not None:
        body["action"] = action
    return body
