from typing import AsyncGenerator

import aiohttp
import pytest
import pytest_asyncio
from status_monitor.errors import PollingClientTimeout, RemoteJobError
from status_monitor.http_probe import HttpStatusProbe
from status_monitor.models import Duration
from status_monitor.polling_client import PollingClient, PollingOptions
from status_server import StatusServer

BASE_URL_TEMPLATE = "http://localhost:{}"


@pytest_asyncio.fixture
async def server(unused_tcp_port_factory) -> AsyncGenerator[StatusServer, None]:
    """Start and yield a test StatusServer instance on a random port."""
    port = unused_tcp_port_factory()
    server_instance = StatusServer(completion_time=0.3, error_rate=0.0)
    await server_instance.start(port=port)
    try:
        yield server_instance, port
    finally:
        await server_instance.stop()


def polling_client(probe, timeout: float = 5.0) -> PollingClient:
    return PollingClient.create(
        PollingOptions(
            probe=probe,
            frequency=Duration.milliseconds(100),
            timeout=Duration.seconds(timeout),
        )
    )


@pytest.mark.asyncio
async def test_successful_completion(server):
    """Test polling a live endpoint until the job completes."""
    server_instance, port = server

    async with aiohttp.ClientSession() as session:
        probe = HttpStatusProbe(BASE_URL_TEMPLATE.format(port), session)
        payload = await polling_client(probe).observe()

    assert payload["result"] == "completed"
    assert payload["elapsed"] >= 0.3
    assert server_instance.request_count > 1


@pytest.mark.asyncio
async def test_error_scenario(server):
    """Test a job reporting an error fails the observation on the first probe."""
    server_instance, port = server
    server_instance.error_rate = 1.0

    async with aiohttp.ClientSession() as session:
        probe = HttpStatusProbe(BASE_URL_TEMPLATE.format(port), session)
        with pytest.raises(RemoteJobError) as exc_info:
            await polling_client(probe).observe()

    assert exc_info.value.raw_response == {"result": "error"}
    assert server_instance.request_count == 1


@pytest.mark.asyncio
async def test_timeout_scenario(server):
    """Test timeout handling."""
    server_instance, port = server
    server_instance.completion_time = 30.0

    async with aiohttp.ClientSession() as session:
        probe = HttpStatusProbe(BASE_URL_TEMPLATE.format(port), session)
        with pytest.raises(PollingClientTimeout):
            await polling_client(probe, timeout=0.5).observe()


@pytest.mark.asyncio
async def test_http_error(server):
    """Test HTTP errors from the status endpoint pass through unchanged."""
    _, port = server

    async with aiohttp.ClientSession() as session:
        probe = HttpStatusProbe(BASE_URL_TEMPLATE.format(port), session, path="/missing")
        with pytest.raises(aiohttp.ClientResponseError) as exc_info:
            await polling_client(probe).observe()

    assert exc_info.value.status == 404


@pytest.mark.asyncio
async def test_server_unavailable(unused_tcp_port_factory):
    """Test behavior when server is not available."""
    port = unused_tcp_port_factory()

    async with aiohttp.ClientSession() as session:
        probe = HttpStatusProbe(BASE_URL_TEMPLATE.format(port), session)
        with pytest.raises(aiohttp.ClientConnectionError):
            await polling_client(probe).observe()
