"""Shared fixtures."""

import httpx
import pytest
import pytest_asyncio

from siteprobe.config import Settings

from fakes import FakeProber


@pytest.fixture
def fake_prober() -> FakeProber:
    return FakeProber()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        w3c_batch_delay=0.0,
        pagespeed_batch_delay=0.0,
        google_api_key="",
        _env_file=None,
    )


@pytest_asyncio.fixture
async def http_client():
    client = httpx.AsyncClient()
    yield client
    await client.aclose()
