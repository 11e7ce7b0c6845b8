"""Inter-window pacing for the batch scheduler."""

from __future__ import annotations

from card_enricher.config.policy import BatchPolicy

_DEFAULT_POLICY = BatchPolicy()


def calculate_delay(
    base_delay_ms: float,
    concurrency: int,
    rate_limit_event_count: int,
    rate_limited: bool,
    policy: BatchPolicy | None = None,
) -> float:
    """Return the wait in milliseconds before the next window.

    Parameters
    ----------
    base_delay_ms:
        The operator-chosen delay fixed at task start.
    concurrency:
        Concurrency *after* the adaptor has processed the last window.
    rate_limit_event_count:
        Throttled windows so far, including the one just settled.
    rate_limited:
        Whether the window just settled saw a rate limit.

    Pacing rules, first match wins:

    - throttled: ``base * 2^min(events, cap)``, capped at the backoff ceiling
    - serial (concurrency 1): ``base``
    - parallel: ``max(floor, base / 2)``
    """
    if policy is None:
        policy = _DEFAULT_POLICY

    if rate_limited:
        multiplier = 2 ** min(rate_limit_event_count, policy.rate_limit_exponent_cap)
        return min(base_delay_ms * multiplier, policy.max_backoff_delay_ms)

    if concurrency == 1:
        return base_delay_ms

    return max(policy.parallel_delay_floor_ms, base_delay_ms / 2)
