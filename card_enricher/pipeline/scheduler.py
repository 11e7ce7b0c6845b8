"""Lockstep batch scheduler.

# ─── DESIGN ────────────────────────────────────────────────────────────
#
# One iteration processes one *window*: the next ``concurrency`` items.
#
#   build window ─→ publish ─→ gather(executor.process ...) ─→ apply results
#        ↑                                                        │
#        └── cancellable delay ←── publish ←── adapt concurrency ←┘
#
#   - Every window member is launched together and the loop waits for all
#     of them, so each window yields exactly one adaptation signal.
#   - Results are applied in window order regardless of completion order.
#   - Item failures arrive as ItemResult values, never as exceptions.
#   - An exception escaping the loop itself aborts the task and is logged
#     as a system entry; finalization always runs.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any

import structlog

from card_enricher.config.policy import BatchPolicy
from card_enricher.models.task import (
    ErrorEntry,
    ItemContext,
    ItemOutcome,
    ItemResult,
    TaskSnapshot,
    TaskState,
)
from card_enricher.pipeline.cancellation import CancellationToken
from card_enricher.pipeline.concurrency_adaptor import (
    AdaptorState,
    WindowClassification,
    adapt_concurrency,
)
from card_enricher.pipeline.delay import calculate_delay
from card_enricher.pipeline.executor import RetryingItemExecutor
from card_enricher.pipeline.options import StartOptions
from card_enricher.utils.errors import SchedulerFatalError
from card_enricher.utils.logging import get_logger

RATE_LIMIT_MESSAGE = "API rate limit hit, retry later or lower concurrency"
STOPPED_MESSAGE = "Stopped while waiting to retry after a rate limit"
DataChangedNotifier = Callable[[], Any]


class TaskRecord:
    """Mutable state of the one active task.

    Written only by its scheduler and by ``TaskController.stop()``; readers
    get :class:`TaskSnapshot` copies from :meth:`to_snapshot`.
    """

    def __init__(
        self,
        items: Sequence[Any],
        options: StartOptions,
        policy: BatchPolicy,
    ) -> None:
        self.items: tuple[Any, ...] = tuple(items)
        self.options = options
        self.state = TaskState.RUNNING
        self.cursor = 0
        self.concurrency = policy.initial_concurrency
        self.consecutive_clean_batches = 0
        self.rate_limit_event_count = 0
        self.is_rate_limited = False
        self.success_count = 0
        self.fail_count = 0
        self.errors: deque[ErrorEntry] = deque(maxlen=policy.error_log_capacity)
        self.current_label = "starting"
        self.start_time = datetime.now(tz=timezone.utc)  # noqa: UP017
        self.base_delay_ms = policy.clamp_base_delay(options.base_delay_ms)

    @property
    def total(self) -> int:
        return len(self.items)

    def to_snapshot(self) -> TaskSnapshot:
        return TaskSnapshot(
            running=self.state is not TaskState.IDLE,
            state=self.state,
            current=self.cursor,
            total=self.total,
            success_count=self.success_count,
            fail_count=self.fail_count,
            current_card=self.current_label,
            start_time=self.start_time,
            concurrency=self.concurrency,
            is_rate_limited=self.is_rate_limited,
            fields=list(self.options.fields),
            errors=list(self.errors),
        )


class BatchScheduler:
    """Drives one :class:`TaskRecord` from cursor 0 to completion or cancellation.

    Parameters
    ----------
    record:
        The task to run.
    executor:
        Per-item retrying executor bound to the same cancellation token.
    token:
        Checked before each window and raced by the inter-window delay.
    policy:
        Concurrency bounds, pacing constants and the completion grace delay.
    publish:
        Called with a fresh snapshot on every task change.
    notifier:
        Optional data-changed callback (sync or async); fired after every
        successful item and once more when the task finishes.
    """

    def __init__(
        self,
        record: TaskRecord,
        executor: RetryingItemExecutor,
        token: CancellationToken,
        policy: BatchPolicy,
        publish: Callable[[TaskSnapshot], None],
        notifier: DataChangedNotifier | None = None,
    ) -> None:
        self._record = record
        self._executor = executor
        self._token = token
        self._policy = policy
        self._publish_fn = publish
        self._notifier = notifier
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def run(self) -> None:
        record = self._record
        self._logger.info(
            "batch_task_started",
            total=record.total,
            concurrency=record.concurrency,
            base_delay_ms=record.base_delay_ms,
            fields=record.options.fields,
        )
        try:
            await self._loop()
        except Exception as exc:
            fatal = SchedulerFatalError(f"Batch task aborted: {exc}")
            self._logger.exception("batch_task_fatal", cursor=record.cursor, error=str(exc))
            record.errors.append(
                ErrorEntry(item_id=None, item_title="system", message=fatal.message)
            )
            self._publish()
        finally:
            await self._finalize()

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def _loop(self) -> None:
        record = self._record
        while not self._token.cancelled and record.cursor < record.total:
            start = record.cursor
            window = record.items[start : start + record.concurrency]

            record.current_label = ", ".join(record.options.label_of(item) for item in window)
            self._publish()

            results = await self._run_window(window, start)
            classification = WindowClassification.from_results(results)
            await self._apply_results(window, start, results)
            self._adapt(classification)
            self._publish()

            self._logger.debug(
                "batch_window_settled",
                start=start,
                size=len(window),
                cursor=record.cursor,
                concurrency=record.concurrency,
                rate_limited=classification.any_rate_limited,
                failed=classification.any_failed,
            )

            if record.cursor < record.total and not self._token.cancelled:
                delay_ms = calculate_delay(
                    record.base_delay_ms,
                    record.concurrency,
                    record.rate_limit_event_count,
                    classification.any_rate_limited,
                    self._policy,
                )
                await self._token.sleep(delay_ms / 1000)

    async def _run_window(self, window: Sequence[Any], start: int) -> list[ItemResult]:
        options = self._record.options
        contexts = [
            ItemContext(
                item_id=options.id_of(item, start + offset),
                index=start + offset,
                fields=list(options.fields),
                strategy=options.strategy,
            )
            for offset, item in enumerate(window)
        ]
        raw = await asyncio.gather(
            *(self._executor.process(item, ctx) for item, ctx in zip(window, contexts)),
            return_exceptions=True,
        )
        results: list[ItemResult] = []
        for outcome in raw:
            if isinstance(outcome, ItemResult):
                results.append(outcome)
            elif isinstance(outcome, Exception):
                results.append(
                    ItemResult(outcome=ItemOutcome.FAILED, error=str(outcome) or type(outcome).__name__)
                )
            else:
                # BaseException (CancelledError, KeyboardInterrupt) is not an item failure.
                raise outcome
        return results

    async def _apply_results(
        self,
        window: Sequence[Any],
        start: int,
        results: Sequence[ItemResult],
    ) -> None:
        record = self._record
        options = record.options
        for offset, (item, result) in enumerate(zip(window, results)):
            record.cursor += 1
            item_id = options.id_of(item, start + offset)

            if result.success:
                record.success_count += 1
                if result.partial_error:
                    record.errors.append(
                        ErrorEntry(
                            item_id=item_id,
                            item_title=options.title_of(item),
                            message=f"partially succeeded: {result.partial_error}",
                            is_warning=True,
                        )
                    )
                    self._logger.warning("batch_item_partial", item_id=item_id, error=result.partial_error)
                await self._notify_data_changed()
                continue

            record.fail_count += 1
            if result.rate_limited:
                message = RATE_LIMIT_MESSAGE
            elif result.cancelled:
                message = STOPPED_MESSAGE
            else:
                message = result.error or "unknown error"
            record.errors.append(
                ErrorEntry(item_id=item_id, item_title=options.title_of(item), message=message)
            )
            self._logger.warning(
                "batch_item_failed",
                item_id=item_id,
                rate_limited=result.rate_limited,
                cancelled=result.cancelled,
                attempts=result.attempts,
                error=result.error,
            )

    def _adapt(self, classification: WindowClassification) -> None:
        record = self._record
        previous = record.concurrency
        state = adapt_concurrency(
            classification,
            AdaptorState(
                concurrency=record.concurrency,
                clean_streak=record.consecutive_clean_batches,
                rate_limit_event_count=record.rate_limit_event_count,
                is_rate_limited=record.is_rate_limited,
            ),
            self._policy,
        )
        record.concurrency = state.concurrency
        record.consecutive_clean_batches = state.clean_streak
        record.rate_limit_event_count = state.rate_limit_event_count
        record.is_rate_limited = state.is_rate_limited

        if state.concurrency < previous:
            self._logger.info(
                "concurrency_decreased",
                previous=previous,
                concurrency=state.concurrency,
                rate_limit_events=state.rate_limit_event_count,
            )
        elif state.concurrency > previous:
            self._logger.info("concurrency_increased", previous=previous, concurrency=state.concurrency)

    # ------------------------------------------------------------------
    # Finalization / side effects
    # ------------------------------------------------------------------

    async def _finalize(self) -> None:
        record = self._record
        # Let pollers observe the last counters before the task goes idle.
        await asyncio.sleep(self._policy.completion_grace_seconds)
        record.state = TaskState.IDLE
        record.current_label = ""
        self._publish()
        await self._notify_data_changed()
        self._logger.info(
            "batch_task_finished",
            cursor=record.cursor,
            total=record.total,
            success=record.success_count,
            failed=record.fail_count,
            cancelled=self._token.cancelled,
        )

    def _publish(self) -> None:
        self._publish_fn(self._record.to_snapshot())

    async def _notify_data_changed(self) -> None:
        if self._notifier is None:
            return
        try:
            result = self._notifier()
            if asyncio.iscoroutine(result):
                await result
        except Exception as exc:
            self._logger.warning("data_changed_notifier_failed", error=str(exc))
