"""Configuration: environment Settings, the frozen BatchPolicy, and the YAML loaders."""

from card_enricher.config.loader import load_config, load_policy, policy_from_config
from card_enricher.config.policy import BatchPolicy
from card_enricher.config.settings import Settings

__all__ = ["BatchPolicy", "Settings", "load_config", "load_policy", "policy_from_config"]
