"""Shared fixtures for client tests."""

import pytest

from xbrlus_client.config_loader import ClientConfig
from xbrlus_client.token_store import Credentials, MemoryTokenStore

from .helpers import BASE_URL


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(
        base_url=BASE_URL,
        client_id="client-id",
        client_secret="client-secret",
        platform="pytest",
        username="user@example.com",
        password="hunter2",
    )


@pytest.fixture
def stored_tokens() -> MemoryTokenStore:
    return MemoryTokenStore(Credentials("access-0", "refresh-0"))


@pytest.fixture
def make_client(config, stored_tokens):
    """Build a client over a FakeTransport, with stored tokens unless overridden."""

    from xbrlus_client.client import XBRLUSClient

    def _make(transport, **kwargs):
        kwargs.setdefault("token_store", stored_tokens)
        kwargs.setdefault("randomize_platform", False)
        return XBRLUSClient(config, transport=transport, **kwargs)

    return _make
