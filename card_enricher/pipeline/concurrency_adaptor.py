"""AIMD concurrency control for lockstep batch windows.

One settled window produces exactly one :class:`WindowClassification`, which
feeds :func:`adapt_concurrency`.  Backing off is immediate (halve on any
throttle signal); growing back needs a streak of clean windows and then
adds a single slot.

    window ──classify──→ WindowClassification ──adapt──→ AdaptorState
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from card_enricher.config.policy import BatchPolicy
from card_enricher.models.task import ItemResult


@dataclass(frozen=True)
class WindowClassification:
    all_succeeded: bool
    any_rate_limited: bool
    any_failed: bool

    @property
    def clean(self) -> bool:
        return self.all_succeeded and not self.any_rate_limited

    @classmethod
    def from_results(cls, results: Sequence[ItemResult]) -> "WindowClassification":
        # An item that succeeded only after a throttled attempt still marks
        # the window as rate-limited; one whose backoff was cut short by stop()
        # does not.
        return cls(
            all_succeeded=bool(results) and all(r.success for r in results),
            any_rate_limited=any(
                r.rate_limited or (r.rate_limit_hits > 0 and not r.cancelled) for r in results
            ),
            any_failed=any(not r.success for r in results),
        )


@dataclass(frozen=True)
class AdaptorState:
    concurrency: int
    clean_streak: int = 0
    rate_limit_event_count: int = 0
    is_rate_limited: bool = False


def adapt_concurrency(
    window: WindowClassification,
    state: AdaptorState,
    policy: BatchPolicy,
) -> AdaptorState:
    """Return the state that applies to the next window."""
    if window.any_rate_limited:
        return AdaptorState(
            concurrency=policy.clamp_concurrency(state.concurrency // 2),
            clean_streak=0,
            rate_limit_event_count=state.rate_limit_event_count + 1,
            is_rate_limited=True,
        )

    if window.clean:
        streak = state.clean_streak + 1
        concurrency = state.concurrency
        if streak >= policy.clean_streak_threshold and concurrency < policy.max_concurrency:
            concurrency += 1
            streak = 0
        return AdaptorState(
            concurrency=policy.clamp_concurrency(concurrency),
            clean_streak=streak,
            rate_limit_event_count=state.rate_limit_event_count,
            is_rate_limited=False,
        )

    # Non-throttle failures: hold concurrency, restart the streak.
    return AdaptorState(
        concurrency=policy.clamp_concurrency(state.concurrency),
        clean_streak=0,
        rate_limit_event_count=state.rate_limit_event_count,
        is_rate_limited=False,
    )
