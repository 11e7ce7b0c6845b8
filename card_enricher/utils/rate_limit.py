"""Rate-limit classification for item processor failures.

Providers signal throttling in different ways: an HTTP 429 on the response,
an SDK-specific exception class, or only a phrase in the error text.
:func:`classify_error` folds all of these into a two-way tag so the executor
branches on an enum instead of string-matching at every call site.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum

import httpx
import openai


class ErrorKind(str, Enum):  # noqa: UP042
    RATE_LIMITED = "RATE_LIMITED"
    OTHER = "OTHER"


ErrorClassifier = Callable[[BaseException], ErrorKind]

# Matched case-insensitively against the exception text.  The last entry is
# the throttle message returned by several Chinese-hosted OpenAI-compatible
# gateways.
RATE_LIMIT_PHRASES: tuple[str, ...] = (
    "429",
    "rate limit",
    "too many requests",
    "quota exceeded",
    "请求过于频繁",
)


def _status_of(exc: BaseException) -> int | None:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    for attr in ("status", "status_code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    return None


def classify_error(exc: BaseException) -> ErrorKind:
    """Return ``RATE_LIMITED`` when *exc* looks like upstream throttling."""
    if isinstance(exc, openai.RateLimitError):
        return ErrorKind.RATE_LIMITED
    if _status_of(exc) == 429:
        return ErrorKind.RATE_LIMITED

    message = str(exc).lower()
    if any(phrase in message for phrase in RATE_LIMIT_PHRASES):
        return ErrorKind.RATE_LIMITED
    return ErrorKind.OTHER
