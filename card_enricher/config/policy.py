"""Batch policy constants consumed by the adaptive engine.

:class:`BatchPolicy` is the frozen, validated subset of :class:`Settings`
that the scheduler, adaptor, delay calculator and executor read.  Keeping it
separate from ``Settings`` lets tests build a fast policy (zero delays)
without touching the environment.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, model_validator

from card_enricher.config.settings import Settings
from card_enricher.utils.errors import ConfigurationError


class BatchPolicy(BaseModel):
    """Tunable boundary constants for one controller."""

    model_config = ConfigDict(frozen=True)

    min_concurrency: int = 1
    max_concurrency: int = 5
    initial_concurrency: int = 3
    clean_streak_threshold: int = 3

    default_base_delay_ms: float = 1500
    min_base_delay_ms: float = 500
    max_base_delay_ms: float = 10000
    max_backoff_delay_ms: float = 30000
    parallel_delay_floor_ms: float = 200
    rate_limit_exponent_cap: int = 4

    max_rate_limit_retries: int = 2
    retry_backoff_unit_seconds: float = 1.0

    error_log_capacity: int = 100
    completion_grace_seconds: float = 0.5

    # ConfigurationError is not a ValueError, so pydantic lets it through
    # unwrapped.
    @model_validator(mode="after")
    def _check_bounds(self) -> "BatchPolicy":
        if self.min_concurrency < 1:
            raise ConfigurationError("min_concurrency must be at least 1")
        if not self.min_concurrency <= self.initial_concurrency <= self.max_concurrency:
            raise ConfigurationError(
                "concurrency bounds must satisfy min <= initial <= max "
                f"(got {self.min_concurrency} <= {self.initial_concurrency} "
                f"<= {self.max_concurrency})"
            )
        if self.clean_streak_threshold < 1:
            raise ConfigurationError("clean_streak_threshold must be at least 1")
        if self.min_base_delay_ms > self.max_base_delay_ms:
            raise ConfigurationError("min_base_delay_ms exceeds max_base_delay_ms")
        if self.max_rate_limit_retries < 0:
            raise ConfigurationError("max_rate_limit_retries cannot be negative")
        if self.error_log_capacity < 1:
            raise ConfigurationError("error_log_capacity must be at least 1")
        return self

    @classmethod
    def from_settings(cls, settings: Settings) -> "BatchPolicy":
        return cls(
            min_concurrency=settings.min_concurrency,
            max_concurrency=settings.max_concurrency,
            initial_concurrency=settings.initial_concurrency,
            clean_streak_threshold=settings.clean_streak_threshold,
            default_base_delay_ms=settings.request_delay_ms,
            min_base_delay_ms=settings.min_request_delay_ms,
            max_base_delay_ms=settings.max_request_delay_ms,
            max_backoff_delay_ms=settings.max_backoff_delay_ms,
            parallel_delay_floor_ms=settings.parallel_delay_floor_ms,
            rate_limit_exponent_cap=settings.rate_limit_exponent_cap,
            max_rate_limit_retries=settings.max_rate_limit_retries,
            retry_backoff_unit_seconds=settings.retry_backoff_unit_seconds,
            error_log_capacity=settings.error_log_capacity,
            completion_grace_seconds=settings.completion_grace_seconds,
        )

    def clamp_base_delay(self, base_delay_ms: float | None) -> float:
        """Return *base_delay_ms* (or the default) clamped into the allowed range."""
        if base_delay_ms is None:
            base_delay_ms = self.default_base_delay_ms
        return max(self.min_base_delay_ms, min(self.max_base_delay_ms, float(base_delay_ms)))

    def clamp_concurrency(self, value: int) -> int:
        return max(self.min_concurrency, min(self.max_concurrency, value))
