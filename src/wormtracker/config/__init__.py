"""Application configuration helpers."""

from __future__ import annotations

from .env import float_env_var, optional_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .gist import GistConfig, get_gist_config
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .oracle import OracleConfig, get_oracle_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .tracker import TrackerConfig, get_tracker_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "GistConfig",
    "MissingConfigurationError",
    "OracleConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "TrackerConfig",
    "configure_logging",
    "float_env_var",
    "get_database_config",
    "get_gist_config",
    "get_oracle_config",
    "get_storage_config",
    "get_tracker_config",
    "optional_env_var",
    "require_env_vars",
]
