"""Application configuration helpers."""

from __future__ import annotations

from .dispatch import BoardPaths, DispatchConfig, default_board_resilience, get_dispatch_config
from .enrichment import EnrichmentConfig, enrichment_enabled, get_enrichment_config
from .env import env_float, env_int, optional_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .logging import configure_logging
from .resilience import (
    BackoffPolicy,
    CircuitBreakerPolicy,
    RateLimit,
    ResilienceConfig,
    RetryPolicy,
    SlidingWindowLimit,
)
from .scanner import ScanConfig, get_scan_config
from .storage import DatabaseConfig, data_dir, get_database_config

__all__ = [
    "BackoffPolicy",
    "BoardPaths",
    "CircuitBreakerPolicy",
    "ConfigurationError",
    "DatabaseConfig",
    "DispatchConfig",
    "EnrichmentConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "ScanConfig",
    "SlidingWindowLimit",
    "configure_logging",
    "data_dir",
    "default_board_resilience",
    "enrichment_enabled",
    "env_float",
    "env_int",
    "get_database_config",
    "get_dispatch_config",
    "get_enrichment_config",
    "get_scan_config",
    "optional_env_var",
    "require_env_vars",
]
