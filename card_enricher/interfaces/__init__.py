"""Abstract interfaces for external collaborators driven by the batch engine."""

from card_enricher.interfaces.item_processor import (
    CallableItemProcessor,
    IItemProcessor,
    as_item_processor,
)

__all__ = ["CallableItemProcessor", "IItemProcessor", "as_item_processor"]
