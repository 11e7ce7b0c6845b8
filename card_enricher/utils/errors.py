"""Custom exception hierarchy for card-enricher.

All application exceptions inherit from :class:`EnricherError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "gemini", "ollama") caused the failure.

The hierarchy is organized by where the failure is raised:

    EnricherError  (base -- catch-all for any card-enricher error)
    +-- AlreadyRunningError   (start() while a task is active)
    +-- RateLimitError        (provider throttled the request)
    +-- ItemError             (any other per-item failure)
    +-- PartialFieldWarning   (item finished with some fields missing)
    +-- SchedulerFatalError   (unexpected failure in the batch loop itself)
    +-- ConfigurationError    (invalid policy / settings / CLI wiring)

Only :class:`AlreadyRunningError` and :class:`ConfigurationError` ever reach
callers of the controller.  Item-level errors are raised by processors and
converted into recorded task state by the executor.
"""

from __future__ import annotations


class EnricherError(Exception):
    """Base exception for all card-enricher errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets, e.g.
    ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Controller errors
# ---------------------------------------------------------------------------

class AlreadyRunningError(EnricherError):
    """Raised by ``start()`` when a task is already running or stopping."""

    def __init__(
        self,
        message: str = "A batch task is already running",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Item-level errors (raised by processors, never by the scheduler)
# ---------------------------------------------------------------------------

class RateLimitError(EnricherError):
    """Raised when the generation service throttles a request.

    Carries ``status = 429`` so the default classifier recognises it the
    same way it recognises an HTTP response error.
    """

    status = 429

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ItemError(EnricherError):
    """Raised when a single item could not be enriched."""

    def __init__(
        self,
        message: str = "Item processing failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PartialFieldWarning(EnricherError):
    """Raised by a processor after saving some, but not all, requested fields.

    The executor treats it as a success annotated with the failed field
    names.  It is never retried.
    """

    def __init__(
        self,
        fields: list[str] | tuple[str, ...] = (),
        message: str | None = None,
        provider_name: str | None = None,
    ) -> None:
        self._fields = tuple(fields)
        if message is None:
            message = ", ".join(f"{f} failed" for f in self._fields) or "some fields failed"
        super().__init__(message=message, provider_name=provider_name)

    @property
    def fields(self) -> tuple[str, ...]:
        return self._fields


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class SchedulerFatalError(EnricherError):
    """Wraps an unexpected exception that escaped the batch loop."""

    def __init__(
        self,
        message: str = "Batch task aborted unexpectedly",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(EnricherError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
