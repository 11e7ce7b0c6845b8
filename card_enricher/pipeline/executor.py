"""Retrying wrapper around a single item processor call."""

from __future__ import annotations

from typing import Any

import structlog

from card_enricher.config.policy import BatchPolicy
from card_enricher.interfaces.item_processor import IItemProcessor
from card_enricher.models.task import ItemContext, ItemOutcome, ItemResult
from card_enricher.pipeline.cancellation import CancellationToken
from card_enricher.utils.errors import PartialFieldWarning
from card_enricher.utils.logging import get_logger
from card_enricher.utils.rate_limit import ErrorKind

_logger: structlog.BoundLogger = get_logger(__name__)


class RetryingItemExecutor:
    """Runs one item through the processor, retrying only on rate limits.

    Parameters
    ----------
    processor:
        The item processor; its ``classify_error`` decides what counts as
        throttling.
    token:
        Cancellation token.  A backoff sleep interrupted by it ends the
        item as ``CANCELLED`` without another attempt.
    policy:
        Supplies ``max_rate_limit_retries`` and the backoff unit.  The wait
        before retry *n* (0-based) is ``unit * 2^(n+1)`` seconds.

    :meth:`process` never raises for a processor failure; every outcome is
    returned as an :class:`ItemResult`.
    """

    def __init__(
        self,
        processor: IItemProcessor,
        token: CancellationToken,
        policy: BatchPolicy,
    ) -> None:
        self._processor = processor
        self._token = token
        self._policy = policy

    async def process(self, item: Any, context: ItemContext | None = None) -> ItemResult:
        if context is None:
            context = ItemContext()
        item_id = context.item_id
        retry_count = 0
        while True:
            try:
                await self._processor.process_item(
                    item, context.model_copy(update={"attempt": retry_count + 1})
                )
                return ItemResult(
                    outcome=ItemOutcome.OK,
                    attempts=retry_count + 1,
                    rate_limit_hits=retry_count,
                )
            except PartialFieldWarning as warning:
                return ItemResult(
                    outcome=ItemOutcome.OK,
                    partial_error=warning.message,
                    attempts=retry_count + 1,
                    rate_limit_hits=retry_count,
                )
            except Exception as exc:
                kind = self._classify(exc)
                error = str(exc) or type(exc).__name__

                if kind is ErrorKind.RATE_LIMITED and retry_count < self._policy.max_rate_limit_retries:
                    wait_seconds = self._policy.retry_backoff_unit_seconds * 2 ** (retry_count + 1)
                    _logger.info(
                        "rate_limit_retry",
                        item_id=item_id,
                        retry=retry_count + 1,
                        wait_seconds=wait_seconds,
                        error=error,
                    )
                    if not await self._token.sleep(wait_seconds):
                        _logger.info("rate_limit_retry_cancelled", item_id=item_id, retry=retry_count + 1)
                        return ItemResult(
                            outcome=ItemOutcome.CANCELLED,
                            error=error,
                            attempts=retry_count + 1,
                            rate_limit_hits=retry_count + 1,
                        )
                    retry_count += 1
                    continue

                if kind is ErrorKind.RATE_LIMITED:
                    return ItemResult(
                        outcome=ItemOutcome.RATE_LIMITED,
                        error=error,
                        attempts=retry_count + 1,
                        rate_limit_hits=retry_count + 1,
                    )
                return ItemResult(
                    outcome=ItemOutcome.FAILED,
                    error=error,
                    attempts=retry_count + 1,
                    rate_limit_hits=retry_count,
                )

    def _classify(self, exc: BaseException) -> ErrorKind:
        try:
            return self._processor.classify_error(exc)
        except Exception as classify_exc:
            _logger.warning("error_classifier_failed", error=str(classify_exc))
            return ErrorKind.OTHER
