"""Audio capture boundary. Recording and encoding internals live with the host app."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class CapturedAudio:
    data: bytes
    mime_type: str = "audio/m4a"

    @property
    def size(self) -> int:
        return len(self.data)


class PermissionGate(ABC):
    @abstractmethod
    async def request_recording_permission(self) -> bool:
        """Ask for microphone access; True only when granted."""


class AudioRecorder(ABC):
    @abstractmethod
    async def start(self) -> None:
        """Begin capturing."""

    @abstractmethod
    async def stop(self) -> CapturedAudio:
        """Stop capturing and hand back the recording."""

    async def discard(self) -> None:
        """Drop an in-progress capture. Recorders without cleanup can ignore it."""
        return None


class GrantedPermissions(PermissionGate):
    async def request_recording_permission(self) -> bool:
        return True


__all__ = ["AudioRecorder", "CapturedAudio", "GrantedPermissions", "PermissionGate"]
