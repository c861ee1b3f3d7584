"""Notes enrichment (OpenAI) configuration values."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .env import env_int, optional_env_var, require_env_vars
from .resilience import BackoffPolicy, CircuitBreakerPolicy, SlidingWindowLimit

OPENAI_BASE_URL = "https://api.openai.com/v1/"
OPENAI_TIMEOUT_SECONDS = 30.0
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_QUEUE_SIZE = 100


@dataclass(frozen=True, slots=True)
class EnrichmentConfig:
    """Holds OpenAI API configuration and the resilience knobs wrapped around it."""

    api_key: str
    model: str = DEFAULT_MODEL
    base_url: str = OPENAI_BASE_URL
    timeout_seconds: float = OPENAI_TIMEOUT_SECONDS
    temperature: float = 0.2
    max_tokens: int = 100
    limit: SlidingWindowLimit = field(default_factory=SlidingWindowLimit)
    backoff: BackoffPolicy = field(default_factory=BackoffPolicy)
    breaker: CircuitBreakerPolicy = field(default_factory=CircuitBreakerPolicy)
    queue_size: int = DEFAULT_QUEUE_SIZE


def enrichment_enabled() -> bool:
    value = os.getenv("OPENAI_API_KEY")
    return value is not None and bool(value.strip())


def get_enrichment_config() -> EnrichmentConfig:
    values = require_env_vars(("OPENAI_API_KEY",))
    return EnrichmentConfig(
        api_key=values["OPENAI_API_KEY"],
        model=optional_env_var("OPENAI_MODEL", DEFAULT_MODEL),
        limit=SlidingWindowLimit(
            max_calls=env_int("OPENAI_REQUESTS_PER_MINUTE", 60, minimum=1),
        ),
        backoff=BackoffPolicy(
            max_retries=env_int("OPENAI_MAX_RETRIES", 3),
            initial_backoff_seconds=env_int("OPENAI_INITIAL_BACKOFF_MS", 1000) / 1000,
        ),
        breaker=CircuitBreakerPolicy(
            failure_threshold=env_int("OPENAI_CIRCUIT_BREAKER_THRESHOLD", 5, minimum=1),
            reset_timeout_seconds=env_int("OPENAI_CIRCUIT_BREAKER_TIMEOUT_MS", 60000) / 1000,
        ),
        queue_size=env_int("ENRICHMENT_QUEUE_SIZE", DEFAULT_QUEUE_SIZE, minimum=1),
    )
