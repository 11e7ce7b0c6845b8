"""Abstract base class for per-item enrichment processors.

A processor generates and saves metadata for exactly one item (prompt
construction, the vendor call, response parsing and persistence all live
behind this interface).  The batch engine only needs to know whether the
call succeeded, partially succeeded, or failed, and whether a failure was
upstream throttling.
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from card_enricher.models.task import ItemContext
from card_enricher.utils.rate_limit import ErrorClassifier, ErrorKind, classify_error


class IItemProcessor(ABC):
    """Contract for anything the batch engine can drive.

    Implementations raise on failure.  Throttling must be distinguishable,
    either as an exception carrying ``status``/``status_code`` 429, an
    ``openai.RateLimitError`` / ``httpx.HTTPStatusError``, or a message
    containing a known throttle phrase.  Providers with unusual error
    shapes override :meth:`classify_error`.
    """

    @abstractmethod
    async def process_item(self, item: Any, context: ItemContext) -> None:
        """Enrich and persist one item.

        *context* carries the item id, the requested ``fields`` and the
        task's generation ``strategy``, plus the attempt number.

        Raises
        ------
        card_enricher.utils.errors.PartialFieldWarning
            After saving some fields when others failed.
        Exception
            Any other failure; see :meth:`classify_error`.
        """

    def classify_error(self, exc: BaseException) -> ErrorKind:
        """Tag a failure raised by :meth:`process_item`."""
        return classify_error(exc)


def _takes_context(fn: Callable[..., Any]) -> bool:
    """True when *fn* declares a second positional parameter."""
    try:
        params = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        return False
    positional = [
        p for p in params
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    return len(positional) >= 2


class CallableItemProcessor(IItemProcessor):
    """Adapts a bare ``async def fn(item)`` or ``async def fn(item, context)``
    to :class:`IItemProcessor`.
    """

    def __init__(
        self,
        fn: Callable[..., Awaitable[Any]],
        classifier: ErrorClassifier | None = None,
    ) -> None:
        self._fn = fn
        self._classifier = classifier or classify_error
        self._pass_context = _takes_context(fn)

    async def process_item(self, item: Any, context: ItemContext) -> None:
        if self._pass_context:
            await self._fn(item, context)
        else:
            await self._fn(item)

    def classify_error(self, exc: BaseException) -> ErrorKind:
        return self._classifier(exc)


def as_item_processor(
    processor: IItemProcessor | Callable[..., Awaitable[Any]],
    classifier: ErrorClassifier | None = None,
) -> IItemProcessor:
    """Return *processor* unchanged if it already implements the interface."""
    if isinstance(processor, IItemProcessor):
        return processor
    if not callable(processor):
        raise TypeError(f"processor must be callable, got {type(processor).__name__}")
    return CallableItemProcessor(processor, classifier=classifier)
