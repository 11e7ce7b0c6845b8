"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. config/config.yaml  -- static defaults checked into the repo
  2. .env file           -- local overrides (not committed)
  3. Environment vars    -- set at deploy time

Only settings that were explicitly provided through (2) or (3) override the
YAML file; pydantic defaults never shadow a YAML value.
"""

from __future__ import annotations

from pathlib import Path

import yaml

from card_enricher.config.policy import BatchPolicy
from card_enricher.config.settings import Settings

# Settings field -> (yaml section, yaml key)
_FIELD_MAP: dict[str, tuple[str, str]] = {
    "request_delay_ms": ("batch", "default_base_delay_ms"),
    "min_request_delay_ms": ("batch", "min_base_delay_ms"),
    "max_request_delay_ms": ("batch", "max_base_delay_ms"),
    "max_backoff_delay_ms": ("batch", "max_backoff_delay_ms"),
    "parallel_delay_floor_ms": ("batch", "parallel_delay_floor_ms"),
    "rate_limit_exponent_cap": ("batch", "rate_limit_exponent_cap"),
    "min_concurrency": ("batch", "min_concurrency"),
    "max_concurrency": ("batch", "max_concurrency"),
    "initial_concurrency": ("batch", "initial_concurrency"),
    "clean_streak_threshold": ("batch", "clean_streak_threshold"),
    "max_rate_limit_retries": ("batch", "max_rate_limit_retries"),
    "retry_backoff_unit_seconds": ("batch", "retry_backoff_unit_seconds"),
    "error_log_capacity": ("batch", "error_log_capacity"),
    "completion_grace_seconds": ("batch", "completion_grace_seconds"),
    "app_env": ("app", "env"),
    "log_level": ("logging", "level"),
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge explicitly-set environment Settings on top.

    Args:
        path: Path to the YAML configuration file.  A missing file yields an
            empty base config.
        settings: Optional pre-built Settings (tests); read from the
            environment when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    if settings is None:
        settings = Settings()

    env_overrides: dict = {}
    for field_name in settings.model_fields_set:
        if field_name not in _FIELD_MAP:
            continue
        section, key = _FIELD_MAP[field_name]
        env_overrides.setdefault(section, {})[key] = getattr(settings, field_name)

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def load_policy(path: str = "config/config.yaml", settings: Settings | None = None) -> BatchPolicy:
    """Build a :class:`BatchPolicy` from the merged ``batch`` section."""
    return policy_from_config(load_config(path, settings=settings))


def policy_from_config(config: dict) -> BatchPolicy:
    """Build a :class:`BatchPolicy` from an already merged config dict."""
    return BatchPolicy(**(config.get("batch") or {}))


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
