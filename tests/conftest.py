"""Pytest configuration and fixtures for fetch_plugins tests."""
import asyncio
from typing import AsyncGenerator, Dict, Iterable, List, Optional

import httpx
import pytest

from fetch_plugins import AsyncPluginClient, ClientConfig, RequestPlugins

BASE_URL = "http://some-cool-server"
DATA_URL = f"{BASE_URL}/api/data"


class MockAsyncTransport(httpx.AsyncBaseTransport):
    """Mock async transport for testing."""

    def __init__(
        self,
        response_status: int = 200,
        response_content: bytes = b'{"success": true}',
        response_headers: Optional[dict] = None,
    ) -> None:
        self.response_status = response_status
        self.response_content = response_content
        self.response_headers = response_headers or {"content-type": "application/json"}
        self.requests: List[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Handle the async request and return a mock response."""
        self.requests.append(request)
        return httpx.Response(
            status_code=self.response_status,
            headers=self.response_headers,
            content=self.response_content,
        )

    async def aclose(self) -> None:
        """Close the transport."""
        pass


class DelayedMockAsyncTransport(httpx.AsyncBaseTransport):
    """Mock async transport with configurable delay for testing de-duplication."""

    def __init__(
        self,
        delay: float = 0.05,
        response_status: int = 200,
        response_content: bytes = b'{"success": true}',
    ) -> None:
        self.delay = delay
        self.response_status = response_status
        self.response_content = response_content
        self.request_count = 0
        self.requests: List[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Handle the async request with delay."""
        self.request_count += 1
        self.requests.append(request)
        await asyncio.sleep(self.delay)
        return httpx.Response(
            status_code=self.response_status,
            headers={"content-type": "application/json"},
            content=self.response_content,
        )

    async def aclose(self) -> None:
        """Close the transport."""
        pass


class ErrorMockAsyncTransport(httpx.AsyncBaseTransport):
    """Mock async transport that raises errors."""

    def __init__(self, error: Exception) -> None:
        self.error = error
        self.request_count = 0

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Raise the configured error."""
        self.request_count += 1
        raise self.error

    async def aclose(self) -> None:
        """Close the transport."""
        pass


class PagedMockAsyncTransport(httpx.AsyncBaseTransport):
    """
    Mock paginated endpoint at /api/data.

    Every page holds one item; ``delays`` slows down individual pages so
    responses can arrive out of order, ``fail_pages`` raise a connect error.
    """

    def __init__(
        self,
        total: int = 5,
        delays: Optional[Dict[int, float]] = None,
        fail_pages: Iterable[int] = (),
    ) -> None:
        self.total = total
        self.delays = delays or {}
        self.fail_pages = set(fail_pages)
        self.requests: List[httpx.Request] = []
        self.completed: List[int] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Serve one page."""
        self.requests.append(request)
        page = int(request.url.params.get("page", "1"))
        await asyncio.sleep(self.delays.get(page, 0))

        if page in self.fail_pages:
            raise httpx.ConnectError("Connection refused", request=request)

        self.completed.append(page)
        return httpx.Response(
            status_code=200,
            json={
                "results": [{"id": page, "name": f"Item {page}"}],
                "next": f"{DATA_URL}?page={page + 1}" if page < self.total else None,
                "page": page,
                "page_size": 1,
                "count": self.total,
            },
        )

    async def aclose(self) -> None:
        """Close the transport."""
        pass


def make_client(
    transport: httpx.AsyncBaseTransport,
    plugins: Optional[RequestPlugins] = None,
    **config_kwargs,
) -> AsyncPluginClient:
    """Create a plugin client sending through ``transport``."""
    return AsyncPluginClient(
        ClientConfig(base_url=BASE_URL, plugins=plugins, **config_kwargs),
        httpx_client=httpx.AsyncClient(transport=transport),
    )


@pytest.fixture
def mock_async_transport() -> MockAsyncTransport:
    """Create a mock async transport for testing."""
    return MockAsyncTransport()


@pytest.fixture
def delayed_async_transport() -> DelayedMockAsyncTransport:
    """Create a delayed mock async transport for de-duplication testing."""
    return DelayedMockAsyncTransport(delay=0.05)


@pytest.fixture
def paged_transport() -> PagedMockAsyncTransport:
    """Create a five page endpoint."""
    return PagedMockAsyncTransport(total=5)


@pytest.fixture
async def client(
    delayed_async_transport: DelayedMockAsyncTransport,
) -> AsyncGenerator[AsyncPluginClient, None]:
    """Create a plugin client over the delayed transport."""
    plugin_client = make_client(delayed_async_transport)
    yield plugin_client
    await plugin_client.close()


@pytest.fixture
async def paged_client(
    paged_transport: PagedMockAsyncTransport,
) -> AsyncGenerator[AsyncPluginClient, None]:
    """Create a plugin client over the paginated transport."""
    plugin_client = make_client(paged_transport)
    yield plugin_client
    await plugin_client.close()
