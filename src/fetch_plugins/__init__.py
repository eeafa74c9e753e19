"""
Async HTTP client plugins built on httpx.

- In-flight cache: concurrent identical GET requests share one transport call
- All pages: paginated endpoints are fetched concurrently and merged in page order
- Cancellation gates: a new call cancels the previous, still running, one

Example:
    from fetch_plugins import create_plugin_client, with_cancellation

    client = create_plugin_client("https://api.example.com")

    items = await client.get("/items", get_all_pages=True, inflight_cache=True)

    search = with_cancellation(
        lambda token: client.get("/search", params={"q": q}, cancel_token=token)
    )
"""
import logging
import os

__version__ = "1.0.0"


def _is_debug_enabled() -> bool:
    """
    Check if debug logging is enabled.
    Enable with DEBUG=true, DEBUG=1 or DEBUG=yes.
    """
    return os.environ.get("DEBUG", "").lower() in ("true", "1", "yes")


def _configure_logging() -> None:
    """Configure package logging based on DEBUG environment variable."""
    package_logger = logging.getLogger("fetch_plugins")

    if _is_debug_enabled():
        package_logger.setLevel(logging.DEBUG)

        # Add handler if none exists (avoid duplicate handlers)
        if not package_logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(logging.DEBUG)
            handler.setFormatter(logging.Formatter("[%(name)s] %(message)s"))
            package_logger.addHandler(handler)
    else:
        package_logger.setLevel(logging.WARNING)


# Configure logging on import
_configure_logging()

from .errors import (
    FetchPluginError,
    TransportFailure,
    StatusFailure,
    CancellationFailure,
    AggregationFailure,
)
from .config import (
    PaginationConfig,
    InflightCacheConfig,
    RequestPlugins,
    TimeoutConfig,
    ClientConfig,
    DEFAULT_PAGINATION_CONFIG,
    DEFAULT_INFLIGHT_CACHE_CONFIG,
    merge_pagination_config,
    merge_inflight_cache_config,
    merge_plugins,
    validate_status_2xx,
    validate_status_allow_404,
)
from .types import (
    ExecutionMode,
    RequestDescriptor,
    FetchResponse,
    PageDescriptor,
    InflightEntry,
    InflightEventType,
    InflightEvent,
    InflightEventListener,
)
from .request_builder import build_url, normalize_params
from .request_key import encode_request_key
from .cancellation import (
    CancellationToken,
    CancellationGate,
    run_with_token,
    with_cancellation,
)
from .inflight_cache import InflightRequestCache
from .pagination import PaginationAggregator, parse_page
from .transport import Transport, HttpxTransport
from .client import AsyncPluginClient
from .factory import create_plugin_client

__all__ = [
    # Errors
    "FetchPluginError",
    "TransportFailure",
    "StatusFailure",
    "CancellationFailure",
    "AggregationFailure",
    # Config
    "PaginationConfig",
    "InflightCacheConfig",
    "RequestPlugins",
    "TimeoutConfig",
    "ClientConfig",
    "DEFAULT_PAGINATION_CONFIG",
    "DEFAULT_INFLIGHT_CACHE_CONFIG",
    "merge_pagination_config",
    "merge_inflight_cache_config",
    "merge_plugins",
    "validate_status_2xx",
    "validate_status_allow_404",
    # Types
    "ExecutionMode",
    "RequestDescriptor",
    "FetchResponse",
    "PageDescriptor",
    "InflightEntry",
    "InflightEventType",
    "InflightEvent",
    "InflightEventListener",
    # Request keys
    "build_url",
    "normalize_params",
    "encode_request_key",
    # Cancellation
    "CancellationToken",
    "CancellationGate",
    "run_with_token",
    "with_cancellation",
    # Plugins
    "InflightRequestCache",
    "PaginationAggregator",
    "parse_page",
    # Transport
    "Transport",
    "HttpxTransport",
    # Client
    "AsyncPluginClient",
    "create_plugin_client",
]
