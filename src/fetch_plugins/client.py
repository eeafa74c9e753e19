"""
Async HTTP client with request plugins.

Each request carries an ``ExecutionMode``; the client picks a strategy from
it instead of swapping transports per request:

- DIRECT: transport only
- DEDUPLICATE: InflightRequestCache in front of each transport call
- PAGINATE: PaginationAggregator over either of the above
"""
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from rich.console import Console

from .cancellation import CancellationToken
from .config import (
    ClientConfig,
    PaginationConfig,
    RequestPlugins,
    merge_plugins,
    resolve_config,
    validate_status_2xx,
    validate_status_allow_404,
)
from .inflight_cache import InflightRequestCache
from .pagination import PaginationAggregator
from .transport import HttpxTransport, Transport
from .types import ExecutionMode, FetchResponse, RequestDescriptor

logger = logging.getLogger("fetch_plugins.client")

Strategy = Callable[[RequestDescriptor], Awaitable[FetchResponse]]


class AsyncPluginClient:
    """
    Asynchronous HTTP client with de-duplication, pagination and cancellation.

    Example:
        async with AsyncPluginClient(ClientConfig(base_url="https://api.example.com")) as client:
            response = await client.get("/items", get_all_pages=True, inflight_cache=True)
            response.data   # every item of every page
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        httpx_client: Optional[httpx.AsyncClient] = None,
        transport: Optional[Transport] = None,
        trace_console: Optional[Console] = None,
    ) -> None:
        self._config = resolve_config(config or ClientConfig())
        self._transport: Transport = transport or HttpxTransport(
            httpx_client,
            timeout=self._config.timeout,
            trace=self._config.trace,
            trace_console=trace_console,
        )
        # Pending map is owned by this client and dropped with it
        self._inflight = InflightRequestCache(self._config.inflight)
        self._aggregator = PaginationAggregator(self._send_direct, self._config.pagination)
        self._closed = False

    @property
    def inflight_cache(self) -> InflightRequestCache:
        """In-flight cache, for diagnostics."""
        return self._inflight

    @property
    def aggregator(self) -> PaginationAggregator:
        """Pagination aggregator."""
        return self._aggregator

    def build_request(
        self,
        method: str = "GET",
        path: str = "/",
        *,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        json: Optional[Any] = None,
        cancel_token: Optional[CancellationToken] = None,
        timeout: Optional[float] = None,
        inflight_cache: Optional[bool] = None,
        get_all_pages: Optional[bool] = None,
        get_all_pages_config: Optional[PaginationConfig] = None,
        allow_404: Optional[bool] = None,
    ) -> RequestDescriptor:
        """Build an immutable request descriptor with client defaults applied."""
        plugins = merge_plugins(
            self._config.plugins,
            RequestPlugins(
                inflight_cache=inflight_cache,
                get_all_pages=get_all_pages,
                get_all_pages_config=get_all_pages_config,
                allow_404=allow_404,
            ),
        )

        mode = ExecutionMode.DIRECT
        if plugins.inflight_cache:
            mode |= ExecutionMode.DEDUPLICATE
        if plugins.get_all_pages:
            mode |= ExecutionMode.PAGINATE

        request_headers = dict(self._config.headers)
        if headers:
            request_headers.update(headers)

        return RequestDescriptor(
            method=method.upper(),
            base_url=self._config.base_url,
            path=path,
            params=dict(params or {}),
            headers=request_headers,
            json=json,
            cancel_token=cancel_token,
            mode=mode,
            pagination=plugins.get_all_pages_config,
            validate_status=validate_status_allow_404 if plugins.allow_404 else validate_status_2xx,
            timeout=timeout,
        )

    async def request(
        self,
        method: str = "GET",
        path: str = "/",
        **kwargs: Any,
    ) -> FetchResponse:
        """Make a generic HTTP request. See ``build_request`` for options."""
        if self._closed:
            raise RuntimeError("Client has been closed")
        descriptor = self.build_request(method, path, **kwargs)
        return await self.dispatch(descriptor)

    async def dispatch(self, descriptor: RequestDescriptor) -> FetchResponse:
        """Execute a descriptor with the strategy its mode selects."""
        strategy = self.select_strategy(descriptor)
        return await strategy(descriptor)

    def select_strategy(self, descriptor: RequestDescriptor) -> Strategy:
        """Choose direct, paginating and/or de-duplicating execution."""
        mode = descriptor.mode

        send: Strategy = self._send_direct
        if ExecutionMode.DEDUPLICATE in mode:
            if self._inflight.supports(descriptor):
                send = self._send_deduplicated
            else:
                logger.debug(
                    f"select_strategy: {descriptor.method} is not de-duplicated, bypassing in-flight cache"
                )

        if ExecutionMode.PAGINATE in mode:
            # Each caller aggregates on its own; only the page requests are shared
            async def paginate(request: RequestDescriptor) -> FetchResponse:
                return await self._aggregator.fetch_all(request, send)

            return paginate

        return send

    async def _send_direct(self, descriptor: RequestDescriptor) -> FetchResponse:
        return await self._transport.send(descriptor, descriptor.cancel_token)

    async def _send_deduplicated(self, descriptor: RequestDescriptor) -> FetchResponse:
        return await self._inflight.acquire(descriptor, self._send_direct)

    async def get(self, path: str, **kwargs: Any) -> FetchResponse:
        """GET request."""
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> FetchResponse:
        """POST request."""
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> FetchResponse:
        """PUT request."""
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> FetchResponse:
        """PATCH request."""
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> FetchResponse:
        """DELETE request."""
        return await self.request("DELETE", path, **kwargs)

    async def close(self) -> None:
        """Close the client."""
        self._closed = True
        await self._transport.aclose()

    async def __aenter__(self) -> "AsyncPluginClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()
