"""Test configuration and fixtures."""

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from registry_browser_client import AuthCache


@pytest_asyncio.fixture
async def serve():
    """Start aiohttp applications on local ports; all are closed afterwards."""
    servers: list[TestServer] = []

    async def _serve(app: web.Application) -> str:
        server = TestServer(app)
        await server.start_server()
        servers.append(server)
        return str(server.make_url("")).rstrip("/")

    yield _serve

    for server in servers:
        await server.close()


@pytest.fixture
def auth_cache(tmp_path):
    """Auth cache stored under the test's temporary directory."""
    return AuthCache(tmp_path / "beacon" / "auth.json")


@pytest.fixture
def request_log():
    """List collecting every RequestLog passed to the request logger."""
    return []


# Pytest configuration
def pytest_configure(config):
    """Configure pytest markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test against fake registries"
    )
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")
