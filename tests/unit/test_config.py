"""Unit tests for provider configuration."""

import json

import pytest
from pydantic import ValidationError

from sentry_provider.clients.exceptions import ConfigurationError
from sentry_provider.config import (
    DEFAULT_BASE_URL,
    ConfigLoader,
    LoggingConfig,
    ProviderConfig,
    RetryConfig,
    load_config_from_dict,
)
from sentry_provider.config.loader import EnvironmentVariableError, find_config_file


@pytest.fixture(autouse=True)
def no_dotenv(monkeypatch):
    """Stop a local .env file from leaking into the tests."""
    monkeypatch.setattr("sentry_provider.config.models.load_dotenv", lambda: None)


class TestProviderConfig:
    """Test ProviderConfig validation."""

    def test_defaults(self):
        config = ProviderConfig(token="abc")

        assert config.api_url == DEFAULT_BASE_URL
        assert config.timeout_seconds == 30.0
        assert config.retry.max_retries == 5
        assert config.logging.format == "text"

    def test_token_is_secret(self):
        config = ProviderConfig(token="abc")

        assert config.token.get_secret_value() == "abc"
        assert "abc" not in repr(config)

    def test_blank_token_rejected(self):
        with pytest.raises(ValidationError):
            ProviderConfig(token="   ")

    def test_base_url_must_end_with_api(self):
        with pytest.raises(ValidationError, match="/api/"):
            ProviderConfig(token="abc", base_url="https://sentry.example.com/")

    def test_region_base_url_accepted(self):
        config = ProviderConfig(token="abc", base_url="https://de.sentry.io/api/")
        assert config.api_url == "https://de.sentry.io/api/"

    def test_config_is_frozen(self):
        config = ProviderConfig(token="abc")
        with pytest.raises(ValidationError):
            config.timeout_seconds = 5

    def test_retry_bounds(self):
        with pytest.raises(ValidationError):
            RetryConfig(max_retries=11)

    def test_log_level_normalized(self):
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_invalid_log_format(self):
        with pytest.raises(ValidationError):
            LoggingConfig(format="xml")


class TestFromEnv:
    """Test credential and base URL precedence."""

    def test_explicit_token_wins(self, monkeypatch):
        monkeypatch.setenv("SENTRY_AUTH_TOKEN", "from-env")

        config = ProviderConfig.from_env(token="explicit")

        assert config.token.get_secret_value() == "explicit"

    def test_auth_token_before_legacy_token(self, monkeypatch):
        monkeypatch.setenv("SENTRY_AUTH_TOKEN", "auth-token")
        monkeypatch.setenv("SENTRY_TOKEN", "legacy-token")

        config = ProviderConfig.from_env()

        assert config.token.get_secret_value() == "auth-token"

    def test_legacy_token_fallback(self, monkeypatch):
        monkeypatch.setenv("SENTRY_TOKEN", "legacy-token")

        config = ProviderConfig.from_env()

        assert config.token.get_secret_value() == "legacy-token"

    def test_missing_token(self):
        with pytest.raises(ConfigurationError, match="SENTRY_AUTH_TOKEN"):
            ProviderConfig.from_env()

    def test_base_url_precedence(self, monkeypatch):
        monkeypatch.setenv("SENTRY_BASE_URL", "https://us.sentry.io/api/")

        assert ProviderConfig.from_env(token="t").api_url == "https://us.sentry.io/api/"
        assert (
            ProviderConfig.from_env(token="t", base_url="https://self-hosted.example.com/api/").api_url
            == "https://self-hosted.example.com/api/"
        )

    def test_default_base_url(self):
        assert ProviderConfig.from_env(token="t").api_url == DEFAULT_BASE_URL

    def test_invalid_env_value_is_configuration_error(self, monkeypatch):
        monkeypatch.setenv("SENTRY_MAX_RETRIES", "many")

        with pytest.raises(ConfigurationError):
            ProviderConfig.from_env(token="t")

    def test_invalid_base_url_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            ProviderConfig.from_env(token="t", base_url="https://sentry.example.com")


class TestConfigLoader:
    """Test file-based configuration."""

    def test_load_yaml_with_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MY_SENTRY_TOKEN", "yaml-token")
        config_file = tmp_path / "sentry-provider.yaml"
        config_file.write_text(
            "token: ${MY_SENTRY_TOKEN}\n"
            "base_url: ${SENTRY_URL:https://de.sentry.io/api/}\n"
            "retry:\n"
            "  max_retries: 2\n"
        )

        config = ConfigLoader().load_config(config_file)

        assert config.token.get_secret_value() == "yaml-token"
        assert config.api_url == "https://de.sentry.io/api/"
        assert config.retry.max_retries == 2

    def test_load_json(self, tmp_path):
        config_file = tmp_path / "sentry-provider.json"
        config_file.write_text(json.dumps({"token": "json-token", "timeout_seconds": 10}))

        config = ConfigLoader().load_config(config_file)

        assert config.timeout_seconds == 10

    def test_missing_env_var(self, tmp_path):
        config_file = tmp_path / "sentry-provider.yaml"
        config_file.write_text("token: ${UNSET_SENTRY_VARIABLE}\n")

        with pytest.raises(EnvironmentVariableError, match="UNSET_SENTRY_VARIABLE"):
            ConfigLoader().load_config(config_file)

    def test_unsupported_format(self, tmp_path):
        config_file = tmp_path / "sentry-provider.toml"
        config_file.write_text("token = 'x'\n")

        with pytest.raises(ConfigurationError, match="Unsupported"):
            ConfigLoader().load_config(config_file)

    def test_token_falls_back_to_environment(self, monkeypatch):
        monkeypatch.setenv("SENTRY_TOKEN", "env-token")

        config = load_config_from_dict({"timeout_seconds": 5})

        assert config.token.get_secret_value() == "env-token"

    def test_validation_error_wrapped(self):
        with pytest.raises(ConfigurationError, match="validation failed"):
            load_config_from_dict({"token": "t", "rate_limit_per_minute": 0})

    def test_find_config_file_searches_parents(self, tmp_path):
        config_file = tmp_path / "sentry-provider.yml"
        config_file.write_text("token: t\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)

        assert find_config_file(nested) == config_file.resolve()
