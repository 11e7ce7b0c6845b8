"""Task controller: the public start/stop/status/subscribe surface.

# ─── DESIGN ────────────────────────────────────────────────────────────
#
# TaskController owns at most one active TaskRecord.  start() validates the
# single-task precondition, builds the record, executor and scheduler, and
# launches the scheduler as a background asyncio task.  All later progress
# reaches callers through status() polling or subscribe() callbacks.
#
# One controller per process is an application choice; nothing here is
# module-level state.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

import structlog

from card_enricher.config.policy import BatchPolicy
from card_enricher.interfaces.item_processor import IItemProcessor, as_item_processor
from card_enricher.models.task import TaskSnapshot, TaskState
from card_enricher.pipeline.cancellation import CancellationToken
from card_enricher.pipeline.executor import RetryingItemExecutor
from card_enricher.pipeline.options import StartOptions
from card_enricher.pipeline.progress_tracker import ProgressTracker, SnapshotListener
from card_enricher.pipeline.scheduler import BatchScheduler, DataChangedNotifier, TaskRecord
from card_enricher.utils.errors import AlreadyRunningError
from card_enricher.utils.logging import get_logger
from card_enricher.utils.rate_limit import ErrorClassifier

logger: structlog.BoundLogger = get_logger(__name__)


class TaskController:
    """Runs one adaptive batch task at a time.

    Parameters
    ----------
    policy:
        Boundary constants; defaults to :class:`BatchPolicy` defaults.
    notifier:
        Data-changed callback handed to every scheduler this controller
        launches.
    classifier:
        Rate-limit classifier used when ``start()`` receives a bare async
        callable.  :class:`IItemProcessor` instances use their own
        ``classify_error``.
    """

    def __init__(
        self,
        policy: BatchPolicy | None = None,
        notifier: DataChangedNotifier | None = None,
        classifier: ErrorClassifier | None = None,
    ) -> None:
        self._policy = policy or BatchPolicy()
        self._notifier = notifier
        self._classifier = classifier
        self._tracker = ProgressTracker()
        self._record: TaskRecord | None = None
        self._token: CancellationToken | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def policy(self) -> BatchPolicy:
        return self._policy

    def is_running(self) -> bool:
        return self._record is not None and self._record.state is not TaskState.IDLE

    # ─── Task lifecycle ────────────────────────────────────────────────

    async def start(
        self,
        items: Iterable[Any],
        processor: IItemProcessor | Callable[..., Awaitable[Any]],
        options: StartOptions | None = None,
    ) -> dict[str, int]:
        """Launch a batch over *items* and return ``{"total": n}`` immediately.

        Raises
        ------
        AlreadyRunningError
            If a task is running or stopping.  The active task is untouched.
        """
        if self.is_running():
            raise AlreadyRunningError()

        items = list(items)
        if not items:
            logger.info("batch_task_skipped_empty")
            return {"total": 0}

        options = options or StartOptions()
        item_processor = as_item_processor(processor, classifier=self._classifier)

        token = CancellationToken()
        record = TaskRecord(items, options, self._policy)
        executor = RetryingItemExecutor(item_processor, token, self._policy)
        scheduler = BatchScheduler(
            record,
            executor,
            token,
            self._policy,
            publish=self._tracker.publish,
            notifier=self._notifier,
        )

        self._record = record
        self._token = token
        self._tracker.publish(record.to_snapshot())
        self._task = asyncio.create_task(scheduler.run(), name="card-enricher-batch")
        return {"total": record.total}

    def stop(self) -> dict[str, bool]:
        """Request cancellation.  Idempotent; a no-op without an active task."""
        if self._token is not None:
            self._token.cancel()

        record = self._record
        if record is not None and record.state is TaskState.RUNNING:
            record.state = TaskState.STOPPING
            record.current_label = "stopping"
            logger.info("batch_task_stop_requested", cursor=record.cursor, total=record.total)
            self._tracker.publish(record.to_snapshot())
        return {"stopped": True}

    async def wait(self) -> TaskSnapshot:
        """Wait for the current scheduler, if any, and return the final snapshot."""
        if self._task is not None:
            await self._task
        await self._tracker.drain()
        return self.status()

    async def shutdown(self) -> None:
        """Stop the active task and wait for the scheduler to finalize."""
        self.stop()
        await self.wait()
        logger.info("batch_controller_shutdown")

    # ─── Queries / listeners ───────────────────────────────────────────

    def status(self) -> TaskSnapshot:
        if self._record is None:
            return TaskSnapshot()
        return self._record.to_snapshot()

    def subscribe(self, callback: SnapshotListener) -> Callable[[], None]:
        """Register *callback* for every snapshot; returns an idempotent unsubscribe."""
        subscription_id = self._tracker.register_listener(callback)

        def unsubscribe() -> None:
            self._tracker.unregister_listener(subscription_id)

        return unsubscribe
