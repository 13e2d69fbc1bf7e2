"""Configuration loading and validation."""

from .loader import load_config
from .schema import (
    MAX_CANDIDATE_FILES,
    CacheConfig,
    ContextConfig,
    EngineConfig,
    GitHubConfig,
    LoggingConfig,
    RetryConfig,
)

__all__ = [
    # Loader
    "load_config",
    # Root config
    "EngineConfig",
    # Sections
    "GitHubConfig",
    "CacheConfig",
    "ContextConfig",
    "LoggingConfig",
    "RetryConfig",
    "MAX_CANDIDATE_FILES",
]
