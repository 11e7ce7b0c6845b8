"""Adaptive batch-processing engine: controller, scheduler, executor and policies."""

from card_enricher.pipeline.cancellation import CancellationToken
from card_enricher.pipeline.concurrency_adaptor import (
    AdaptorState,
    WindowClassification,
    adapt_concurrency,
)
from card_enricher.pipeline.controller import TaskController
from card_enricher.pipeline.delay import calculate_delay
from card_enricher.pipeline.executor import RetryingItemExecutor
from card_enricher.pipeline.options import StartOptions
from card_enricher.pipeline.progress_tracker import ProgressTracker
from card_enricher.pipeline.scheduler import BatchScheduler, TaskRecord

__all__ = [
    "AdaptorState",
    "BatchScheduler",
    "CancellationToken",
    "ProgressTracker",
    "RetryingItemExecutor",
    "StartOptions",
    "TaskController",
    "TaskRecord",
    "WindowClassification",
    "adapt_concurrency",
    "calculate_delay",
]
