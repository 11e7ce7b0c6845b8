"""Batch task models: lifecycle state, error log entries, snapshots, item context and results.

All models here are frozen pydantic models.  The scheduler keeps its own
mutable task record (see ``card_enricher.pipeline.scheduler``) and hands
out :class:`TaskSnapshot` copies, so readers never observe a half-applied
window.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TaskState(str, Enum):  # noqa: UP042  StrEnum requires Python 3.11+
    """Lifecycle of the single batch task.

        IDLE → RUNNING → (STOPPING) → IDLE
    """

    IDLE = "IDLE"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"   # stop() requested, scheduler not yet finalized


class ItemOutcome(str, Enum):  # noqa: UP042
    """Tagged result of one item after retries."""

    OK = "OK"
    RATE_LIMITED = "RATE_LIMITED"
    FAILED = "FAILED"
    # stop() interrupted a rate-limit backoff before the retry ran.
    CANCELLED = "CANCELLED"


class ErrorEntry(BaseModel):
    """One entry in the task's bounded error log.

    Warnings (``is_warning=True``) come from items that partially succeeded
    and are still counted as successes.
    """

    model_config = ConfigDict(frozen=True)

    # None for system-level entries (scheduler failure).
    item_id: Any = None
    item_title: str = ""
    message: str
    time: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))  # noqa: UP017
    is_warning: bool = False


class ItemContext(BaseModel):
    """Per-item call context handed to processors that accept it.

    ``fields`` and ``strategy`` are the task's start options, passed through
    untouched; ``attempt`` is 1 on the first call and grows on each
    rate-limit retry.
    """

    model_config = ConfigDict(frozen=True)

    item_id: Any = None
    index: int = 0
    fields: list[str] = Field(default_factory=list)
    strategy: dict[str, Any] = Field(default_factory=dict)
    attempt: int = 1


class ItemResult(BaseModel):
    """Settled result of a single item, as returned by the executor."""

    model_config = ConfigDict(frozen=True)

    outcome: ItemOutcome
    error: str | None = None
    partial_error: str | None = None
    attempts: int = 1
    # Throttled attempts seen, including ones that were retried away.
    rate_limit_hits: int = 0

    @property
    def success(self) -> bool:
        return self.outcome is ItemOutcome.OK

    @property
    def rate_limited(self) -> bool:
        return self.outcome is ItemOutcome.RATE_LIMITED

    @property
    def cancelled(self) -> bool:
        return self.outcome is ItemOutcome.CANCELLED


class TaskSnapshot(BaseModel):
    """Immutable, read-only view of the task published to pollers and subscribers."""

    model_config = ConfigDict(frozen=True)

    running: bool = False
    state: TaskState = TaskState.IDLE
    current: int = 0
    total: int = 0
    success_count: int = 0
    fail_count: int = 0
    current_card: str = ""
    start_time: datetime | None = None
    concurrency: int = 0
    is_rate_limited: bool = False
    fields: list[str] = Field(default_factory=list)
    errors: list[ErrorEntry] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase wire form used by status pollers."""
        if not self.running and self.start_time is None:
            return {"running": False}
        return {
            "running": self.running,
            "state": self.state.value,
            "types": list(self.fields),
            "current": self.current,
            "total": self.total,
            "successCount": self.success_count,
            "failCount": self.fail_count,
            "currentCard": self.current_card,
            "startTime": int(self.start_time.timestamp() * 1000) if self.start_time else None,
            "concurrency": self.concurrency,
            "isRateLimited": self.is_rate_limited,
            "errors": [
                {
                    "cardId": e.item_id,
                    "cardTitle": e.item_title,
                    "error": e.message,
                    "time": int(e.time.timestamp() * 1000),
                    "isWarning": e.is_warning,
                }
                for e in self.errors
            ],
        }
