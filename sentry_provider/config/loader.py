"""Configuration loader with YAML parsing and environment variable substitution."""

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from sentry_provider.clients.exceptions import ConfigurationError
from sentry_provider.config.models import (
    BASE_URL_ENV_VAR,
    DEFAULT_BASE_URL,
    ProviderConfig,
    resolve_token_from_env,
)


class EnvironmentVariableError(ConfigurationError):
    """Raised when environment variable substitution fails."""
    pass


class ConfigLoader:
    """Configuration loader with environment variable substitution."""

    # Pattern for environment variable substitution: ${VAR_NAME} or ${VAR_NAME:default_value}
    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*?)(?::([^}]*))?\}')

    def load_config(self, config_path: Path) -> ProviderConfig:
        """Load and validate configuration from a YAML or JSON file.

        Missing ``token`` and ``base_url`` keys fall back to the same
        environment variables as :meth:`ProviderConfig.from_env`.

        Args:
            config_path: Path to the configuration file

        Returns:
            Validated ProviderConfig instance

        Raises:
            ConfigurationError: If loading or validation fails
        """
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        with open(config_path, "r", encoding="utf-8") as f:
            raw_content = f.read()

        substituted_content = self._substitute_env_vars(raw_content)

        try:
            if config_path.suffix.lower() == ".json":
                config_data = json.loads(substituted_content)
            elif config_path.suffix.lower() in (".yaml", ".yml"):
                config_data = yaml.safe_load(substituted_content)
            else:
                raise ConfigurationError(
                    f"Unsupported configuration file format: {config_path.suffix}. "
                    "Supported formats: .json, .yaml, .yml"
                )
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in configuration file: {e}") from e

        if config_data is None:
            config_data = {}
        if not isinstance(config_data, dict):
            raise ConfigurationError("Configuration file must contain a mapping")

        return load_config_from_dict(config_data)

    def _substitute_env_vars(self, content: str) -> str:
        """Substitute environment variables in the content.

        Supports patterns like:
        - ${VAR_NAME} - Required environment variable
        - ${VAR_NAME:default} - Environment variable with default value

        Args:
            content: Raw configuration content

        Returns:
            Content with environment variables substituted

        Raises:
            EnvironmentVariableError: If a required environment variable is missing
        """
        missing_vars = []

        def replace_env_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)

            env_value = os.getenv(var_name)
            if env_value is not None:
                return env_value.strip()
            if default_value is not None:
                return default_value.strip()
            missing_vars.append(var_name)
            return match.group(0)

        result = self.ENV_VAR_PATTERN.sub(replace_env_var, content)

        if missing_vars:
            if len(missing_vars) == 1:
                raise EnvironmentVariableError(
                    f"Required environment variable '{missing_vars[0]}' is not set"
                )
            raise EnvironmentVariableError(
                f"Required environment variables are not set: {', '.join(sorted(set(missing_vars)))}"
            )

        return result


def load_config_from_dict(config_data: Dict[str, Any]) -> ProviderConfig:
    """Load configuration from a dictionary, filling connection fallbacks.

    Args:
        config_data: Configuration dictionary

    Returns:
        Validated ProviderConfig instance

    Raises:
        ConfigurationError: If validation fails
    """
    data = dict(config_data)
    if not data.get("token"):
        data["token"] = resolve_token_from_env()
    if not data.get("token"):
        raise ConfigurationError("Configuration has no token and no token environment variable is set")
    if not data.get("base_url"):
        data["base_url"] = os.getenv(BASE_URL_ENV_VAR) or DEFAULT_BASE_URL

    try:
        return ProviderConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e


def load_config_from_path(config_path: Path) -> ProviderConfig:
    """Convenience function to load configuration from path.

    Args:
        config_path: Path to configuration file

    Returns:
        Validated ProviderConfig instance
    """
    return ConfigLoader().load_config(config_path)


def find_config_file(start_path: Optional[Path] = None) -> Optional[Path]:
    """Find a configuration file by searching up the directory tree.

    Searches for ``sentry-provider.yaml``, ``sentry-provider.yml`` and
    ``sentry-provider.json`` in that order.

    Args:
        start_path: Directory to start search from (defaults to current directory)

    Returns:
        Path to configuration file if found, None otherwise
    """
    if start_path is None:
        start_path = Path.cwd()

    config_filenames = [
        "sentry-provider.yaml",
        "sentry-provider.yml",
        "sentry-provider.json",
    ]

    current_path = start_path.resolve()

    while True:
        for filename in config_filenames:
            config_path = current_path / filename
            if config_path.exists():
                return config_path

        parent = current_path.parent
        if parent == current_path:
            break
        current_path = parent

    return None
