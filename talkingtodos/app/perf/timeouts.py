from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")


class PerfTimeoutError(TimeoutError):
    """Raised when a call site's time bound is exceeded."""

    def __init__(self, timeout_ms: int) -> None:
        super().__init__(f"operation exceeded {timeout_ms} ms")
        self.timeout_ms = timeout_ms


def elapsed_ms(start_ts: float) -> int:
    return int((time.monotonic() - start_ts) * 1000)


async def enforce_timeout(
    coro_fn: Callable[[], Awaitable[T]],
    timeout_ms: int,
) -> T:
    """Await ``coro_fn()`` for at most ``timeout_ms``.

    On expiry the inner call is cancelled and abandoned; it is never retried.
    """
    try:
        return await asyncio.wait_for(coro_fn(), timeout=timeout_ms / 1000.0)
    except asyncio.TimeoutError as exc:  # noqa: PERF203
        raise PerfTimeoutError(timeout_ms) from exc
