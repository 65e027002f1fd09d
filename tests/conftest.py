"""Shared pytest fixtures for the Sentry provider tests."""

from unittest.mock import AsyncMock, Mock

import httpx
import pytest
from pydantic import SecretStr

from sentry_provider.clients.sentry import SentryClient
from sentry_provider.config import ProviderConfig, RetryConfig
from sentry_provider.provider import SentryProvider
from tests.fakes import BASE_URL, TEST_TOKEN, FakeSentry


@pytest.fixture(autouse=True)
def clean_sentry_env(monkeypatch):
    """Keep the developer's Sentry environment out of the tests."""
    for name in (
        "SENTRY_AUTH_TOKEN",
        "SENTRY_TOKEN",
        "SENTRY_BASE_URL",
        "SENTRY_MAX_RETRIES",
        "SENTRY_RETRY_DELAY",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def provider_config():
    """Create a test provider configuration without backoff delays."""
    return ProviderConfig(
        token=TEST_TOKEN,
        base_url=BASE_URL,
        retry=RetryConfig(max_retries=3, retry_delay_seconds=0.0, max_delay_seconds=0.0),
    )


@pytest.fixture
def make_client():
    """Factory for a SentryClient served by an httpx.MockTransport handler."""

    def _make(handler, **kwargs) -> SentryClient:
        options = {
            "max_retries": 3,
            "retry_delay_seconds": 0.0,
            "max_delay_seconds": 0.0,
        }
        options.update(kwargs)
        return SentryClient(
            token=SecretStr(TEST_TOKEN),
            base_url=BASE_URL,
            transport=httpx.MockTransport(handler),
            **options,
        )

    return _make


@pytest.fixture
def fake_sentry():
    """Create an empty in-memory Sentry."""
    return FakeSentry()


@pytest.fixture
def provider(provider_config, fake_sentry):
    """Create a provider wired to the in-memory Sentry."""
    return SentryProvider(provider_config, transport=fake_sentry.transport)


@pytest.fixture
def mock_client():
    """Create a mock Sentry client with the JSON helpers used by resources."""
    client = Mock(spec=SentryClient)
    client.get_json = AsyncMock()
    client.post_json = AsyncMock()
    client.put_json = AsyncMock()
    client.delete = AsyncMock()
    client.list_page = AsyncMock()
    client.paginate = AsyncMock()
    return client
