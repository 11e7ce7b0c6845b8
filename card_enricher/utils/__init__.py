"""Utility modules for card-enricher.

- **errors** -- Domain exception hierarchy rooted at EnricherError.
- **rate_limit** -- Tags processor failures as upstream throttling or not.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

from card_enricher.utils.errors import (
    AlreadyRunningError,
    ConfigurationError,
    EnricherError,
    ItemError,
    PartialFieldWarning,
    RateLimitError,
    SchedulerFatalError,
)
from card_enricher.utils.logging import configure_logging, get_logger
from card_enricher.utils.rate_limit import ErrorKind, classify_error

__all__ = [
    "AlreadyRunningError",
    "ConfigurationError",
    "EnricherError",
    "ErrorKind",
    "ItemError",
    "PartialFieldWarning",
    "RateLimitError",
    "SchedulerFatalError",
    "classify_error",
    "configure_logging",
    "get_logger",
]
