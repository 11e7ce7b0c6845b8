"""Snapshot broadcasting with callback-based listener notification.

# ─── HOW PROGRESS TRACKING WORKS ──────────────────────────────────────
#
#   BatchScheduler ──publish()──→ ProgressTracker ──callback(snapshot)──→ listener
#   TaskController ──publish()──↗                                      ──→ listener
#
#   - publish() never blocks the caller: sync listeners run inline, and a
#     listener that returns a coroutine is scheduled on the running loop.
#   - Listener errors are caught and logged so one broken listener cannot
#     stall the scheduler or starve the others.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Callable
from typing import Any

import structlog

from card_enricher.models.task import TaskSnapshot
from card_enricher.utils.logging import get_logger

SnapshotListener = Callable[[TaskSnapshot], Any]


class ProgressTracker:
    """Keeps the registered snapshot listeners and fans snapshots out to them.

    Every registration gets its own subscription id, so the same callable
    registered twice is delivered to twice and each registration is
    removed independently.
    """

    def __init__(self) -> None:
        self._listeners: dict[int, SnapshotListener] = {}
        self._ids = itertools.count(1)
        # Strong references so scheduled listener coroutines aren't GC'd mid-flight.
        self._pending: set[asyncio.Task[Any]] = set()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def register_listener(self, callback: SnapshotListener) -> int:
        """Add *callback* and return its subscription id."""
        subscription_id = next(self._ids)
        self._listeners[subscription_id] = callback
        self._logger.debug("listener_registered", total_listeners=len(self._listeners))
        return subscription_id

    def unregister_listener(self, subscription_id: int) -> None:
        if self._listeners.pop(subscription_id, None) is not None:
            self._logger.debug("listener_unregistered", remaining_listeners=len(self._listeners))

    def publish(self, snapshot: TaskSnapshot) -> None:
        """Deliver *snapshot* to every listener."""
        for callback in list(self._listeners.values()):
            try:
                result = callback(snapshot)
            except Exception as exc:
                self._log_failure(callback, exc)
                continue
            if asyncio.iscoroutine(result):
                self._schedule(callback, result)

    async def drain(self) -> None:
        """Wait for listener coroutines scheduled so far."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _schedule(self, callback: SnapshotListener, coro: Any) -> None:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            self._logger.warning(
                "listener_skipped_no_loop",
                callback=getattr(callback, "__name__", repr(callback)),
            )
            return
        self._pending.add(task)

        def _done(t: asyncio.Task[Any]) -> None:
            self._pending.discard(t)
            if not t.cancelled() and t.exception() is not None:
                self._log_failure(callback, t.exception())

        task.add_done_callback(_done)

    def _log_failure(self, callback: SnapshotListener, exc: BaseException | None) -> None:
        self._logger.warning(
            "listener_callback_error",
            error=str(exc),
            callback=getattr(callback, "__name__", repr(callback)),
        )
