"""Configuration package for sentry-provider."""

from .loader import ConfigLoader, find_config_file, load_config_from_dict, load_config_from_path
from .models import (
    DEFAULT_BASE_URL,
    LoggingConfig,
    ProviderConfig,
    RetryConfig,
)

__all__ = [
    "DEFAULT_BASE_URL",
    "ConfigLoader",
    "LoggingConfig",
    "ProviderConfig",
    "RetryConfig",
    "find_config_file",
    "load_config_from_dict",
    "load_config_from_path",
]
