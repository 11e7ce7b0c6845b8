"""Command-line tools for card-enricher.

- ``python -m card_enricher.cli``: run an adaptive enrichment batch over a
  JSON list of items with a processor given as ``module:attribute``.
"""
