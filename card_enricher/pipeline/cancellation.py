"""Cooperative cancellation shared by the scheduler and the executor."""

from __future__ import annotations

import asyncio


class CancellationToken:
    """A one-shot stop flag whose sleeps wake up as soon as it is set.

    In-flight processor calls are never interrupted; only the waits the
    engine itself owns (inter-window delay, rate-limit backoff) race the
    token.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to *seconds*; return ``False`` if cancelled first."""
        if self._event.is_set():
            return False
        if seconds <= 0:
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False
