"""card-enricher domain models: re-exports the public task model classes."""

from __future__ import annotations

from card_enricher.models.task import (
    ErrorEntry,
    ItemContext,
    ItemOutcome,
    ItemResult,
    TaskSnapshot,
    TaskState,
)

__all__ = [
    "ErrorEntry",
    "ItemContext",
    "ItemOutcome",
    "ItemResult",
    "TaskSnapshot",
    "TaskState",
]
