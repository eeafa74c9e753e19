"""
Factory functions for creating plugin clients.
"""
from typing import Dict, Optional

import httpx

from .client import AsyncPluginClient
from .config import (
    ClientConfig,
    InflightCacheConfig,
    PaginationConfig,
    RequestPlugins,
    TimeoutConfig,
)


def create_plugin_client(
    base_url: str = "",
    *,
    headers: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
    inflight_cache: bool = False,
    get_all_pages: bool = False,
    allow_404: bool = False,
    pagination: Optional[PaginationConfig] = None,
    inflight: Optional[InflightCacheConfig] = None,
    trace: Optional[bool] = None,
    httpx_client: Optional[httpx.AsyncClient] = None,
) -> AsyncPluginClient:
    """
    Create a plugin client with client-wide plugin defaults.

    Args:
        base_url: Base URL prepended to request paths
        headers: Default headers sent with every request
        timeout: Timeout in seconds for connect, read and write
        inflight_cache: De-duplicate in-flight requests by default
        get_all_pages: Aggregate all pages by default
        allow_404: Treat 404 as a successful status by default
        pagination: Pagination field names
        inflight: In-flight cache configuration
        trace: Print request/response panels (default: FETCH_PLUGINS_TRACE)
        httpx_client: Existing httpx client to send requests with

    Example:
        client = create_plugin_client("https://api.example.com", get_all_pages=True)
        response = await client.get("/items")
    """
    config = ClientConfig(
        base_url=base_url,
        headers=dict(headers or {}),
        timeout=TimeoutConfig(connect=timeout, read=timeout, write=timeout)
        if timeout is not None
        else None,
        plugins=RequestPlugins(
            inflight_cache=inflight_cache,
            get_all_pages=get_all_pages,
            allow_404=allow_404,
        ),
        inflight=inflight,
        pagination=pagination,
        trace=trace,
    )
    return AsyncPluginClient(config, httpx_client=httpx_client)
