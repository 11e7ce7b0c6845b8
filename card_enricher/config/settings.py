"""Application settings loaded from environment variables via pydantic-settings.

Values are read from two sources, in priority order:

  1. Environment variables, e.g. ``REQUEST_DELAY_MS=3000``
  2. ``.env`` file in the working directory

Field ``request_delay_ms`` maps to env var ``REQUEST_DELAY_MS``; matching is
case-insensitive.  Defaults apply when neither source sets a field.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """card-enricher settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Pacing ===
    # Base delay between windows, chosen by the operator.  Clamped into
    # [min_request_delay_ms, max_request_delay_ms] at task start.
    request_delay_ms: int = 1500
    min_request_delay_ms: int = 500
    max_request_delay_ms: int = 10000
    max_backoff_delay_ms: int = 30000
    parallel_delay_floor_ms: int = 200
    rate_limit_exponent_cap: int = 4

    # === Adaptive concurrency ===
    min_concurrency: int = 1
    max_concurrency: int = 5
    initial_concurrency: int = 3
    clean_streak_threshold: int = 3

    # === Retry ===
    max_rate_limit_retries: int = 2
    retry_backoff_unit_seconds: float = 1.0

    # === Progress ===
    error_log_capacity: int = 100
    completion_grace_seconds: float = 0.5

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"
