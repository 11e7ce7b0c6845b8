"""Shared pytest fixtures for the card-enricher test suite."""

from __future__ import annotations

from typing import Any

import pytest

from card_enricher.config.policy import BatchPolicy
from card_enricher.pipeline.controller import TaskController


@pytest.fixture
def fast_policy() -> BatchPolicy:
    """Default boundary constants with every wait collapsed to (almost) zero."""
    return BatchPolicy(
        default_base_delay_ms=0,
        min_base_delay_ms=0,
        parallel_delay_floor_ms=0,
        retry_backoff_unit_seconds=0.001,
        completion_grace_seconds=0,
    )


@pytest.fixture
def controller(fast_policy: BatchPolicy) -> TaskController:
    return TaskController(policy=fast_policy)


@pytest.fixture
def cards() -> list[dict[str, Any]]:
    """Ten navigation cards with ids 1..10."""
    return [
        {"id": i, "title": f"Card {i}", "url": f"https://www.site{i}.example.com/"}
        for i in range(1, 11)
    ]


class Throttled(Exception):
    """Looks like an HTTP 429 from a generation provider."""

    status = 429

    def __init__(self, message: str = "Too Many Requests") -> None:
        super().__init__(message)


@pytest.fixture
def throttled() -> type[Throttled]:
    return Throttled
