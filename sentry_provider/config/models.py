"""Configuration models for the Sentry provider."""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, HttpUrl, SecretStr, field_validator

from sentry_provider.clients.exceptions import ConfigurationError

DEFAULT_BASE_URL = "https://sentry.io/api/"

# Checked in order; the first one that is set wins.
TOKEN_ENV_VARS = ("SENTRY_AUTH_TOKEN", "SENTRY_TOKEN")
BASE_URL_ENV_VAR = "SENTRY_BASE_URL"


class RetryConfig(BaseModel):
    """Backoff settings for throttled requests."""

    max_retries: int = Field(
        default=5,
        ge=0,
        le=10,
        description="Number of retries after a rate-limited response",
    )
    retry_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=30.0,
        description="Initial delay between retries in seconds",
    )
    max_delay_seconds: float = Field(
        default=30.0,
        ge=0.0,
        le=300.0,
        description="Upper bound for a single backoff delay",
    )


class LoggingConfig(BaseModel):
    """Configuration for structured logging."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format (json or text)")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(sorted(valid_levels))}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        if v.lower() not in {"json", "text"}:
            raise ValueError("Log format must be 'json' or 'text'")
        return v.lower()


class ProviderConfig(BaseModel):
    """Connection settings shared by every resource reconciler.

    Built once and handed to the client; nothing reads credentials from
    module state after construction.
    """

    model_config = {"frozen": True}

    token: SecretStr = Field(..., description="Sentry authentication token")
    base_url: HttpUrl = Field(
        default=HttpUrl(DEFAULT_BASE_URL),
        description="Sentry API base URL, ending in /api/",
    )
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        description="Timeout for a single HTTP request in seconds",
    )
    rate_limit_per_minute: int = Field(
        default=600,
        ge=1,
        description="Client-side cap on requests per minute",
    )
    user_agent: str | None = Field(
        default=None,
        description="User agent override",
    )
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("token")
    @classmethod
    def validate_token(cls, v: SecretStr) -> SecretStr:
        """Validate that the token is not empty."""
        value = v.get_secret_value().strip()
        if not value:
            raise ValueError("Token cannot be empty")
        return SecretStr(value)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: HttpUrl) -> HttpUrl:
        """Require the /api/ suffix, e.g. https://us.sentry.io/api/."""
        if not str(v).endswith("/api/"):
            raise ValueError("Base URL must end with the /api/ path, including the trailing slash")
        return v

    @property
    def api_url(self) -> str:
        """Base URL as a plain string."""
        return str(self.base_url)

    @classmethod
    def from_env(
        cls,
        token: str | None = None,
        base_url: str | None = None,
        **overrides,
    ) -> "ProviderConfig":
        """Create configuration from explicit values with environment fallbacks.

        Args:
            token: Explicit token; falls back to SENTRY_AUTH_TOKEN, then SENTRY_TOKEN
            base_url: Explicit base URL; falls back to SENTRY_BASE_URL, then the
                public multi-tenant endpoint
            **overrides: Any other ProviderConfig field

        Returns:
            Validated ProviderConfig

        Raises:
            ConfigurationError: If no token is available or validation fails
        """
        # Load environment variables from .env file if it exists
        load_dotenv()

        token = token or resolve_token_from_env()
        if not token:
            raise ConfigurationError(
                f"A Sentry token is required: pass one explicitly or set {' or '.join(TOKEN_ENV_VARS)}"
            )

        base_url = base_url or os.getenv(BASE_URL_ENV_VAR) or DEFAULT_BASE_URL

        try:
            retry = overrides.pop("retry", None) or RetryConfig(
                max_retries=int(os.getenv("SENTRY_MAX_RETRIES", "5")),
                retry_delay_seconds=float(os.getenv("SENTRY_RETRY_DELAY", "1.0")),
            )
            logging = overrides.pop("logging", None) or LoggingConfig(
                level=os.getenv("LOG_LEVEL", "INFO"),
                format=os.getenv("LOG_FORMAT", "text"),
            )
            return cls(
                token=token,
                base_url=base_url,
                retry=retry,
                logging=logging,
                **overrides,
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid provider configuration: {e}") from e


def resolve_token_from_env() -> str | None:
    """Return the first token found in the supported environment variables."""
    for name in TOKEN_ENV_VARS:
        value = os.getenv(name)
        if value:
            return value
    return None
