"""Fixtures for repository tests."""

import ssl

import pytest
import pytest_asyncio

from busmgmt import BusManagement

SUBSCRIPTION_ID = "sub-123"
BASE_URL = f"https://management.core.windows.net/{SUBSCRIPTION_ID}/services/servicebus"


@pytest.fixture
def base_url():
    return BASE_URL


@pytest_asyncio.fixture
async def live_db(monkeypatch):
    """A session talking straight to the (mocked) network."""
    monkeypatch.setattr(
        "busmgmt.client._ssl_context", lambda cert, key: ssl.create_default_context()
    )
    async with BusManagement(subscription_id=SUBSCRIPTION_ID, cert="mgmt.pem") as db:
        yield db
