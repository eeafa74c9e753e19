"""
Configuration for fetch_plugins.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union
from urllib.parse import urlparse
import logging
import os

logger = logging.getLogger("fetch_plugins.config")


def validate_status_2xx(status: int) -> bool:
    """Default status validator: only 2xx responses are successful."""
    return 200 <= status < 300


def validate_status_allow_404(status: int) -> bool:
    """Status validator that also treats 404 as successful."""
    return status == 404 or 200 <= status < 300


@dataclass
class PaginationConfig:
    """Field names used to read paginated response bodies."""

    results_field: str = "results"
    """Field holding the items of the current page."""

    current_page_field: str = "page"
    """Field holding the current page number (also the query parameter)."""

    page_size_field: str = "page_size"
    """Field holding the page size (also the page-size hint parameter)."""

    next_page_field: str = "next"
    """Field holding the URL of the next page."""

    total_count_field: str = "count"
    """Field holding the total number of items."""

    default_page_size: int = 100
    """Page size hint added to the first request when none is given."""


@dataclass
class InflightCacheConfig:
    """Configuration for in-flight request de-duplication."""

    methods: List[str] = field(default_factory=lambda: ["GET", "HEAD"])
    """HTTP methods safe to de-duplicate."""


@dataclass
class RequestPlugins:
    """
    Plugin switches for a request.

    ``None`` means "inherit": per-request values fall back to the client
    defaults, which fall back to off.
    """

    inflight_cache: Optional[bool] = None
    get_all_pages: Optional[bool] = None
    get_all_pages_config: Optional[PaginationConfig] = None
    allow_404: Optional[bool] = None


@dataclass
class TimeoutConfig:
    """Timeout configuration in seconds."""

    connect: float = 5.0
    read: float = 30.0
    write: float = 10.0


@dataclass
class ClientConfig:
    """Client configuration."""

    base_url: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    timeout: Union[TimeoutConfig, float, None] = None
    plugins: Optional[RequestPlugins] = None
    inflight: Optional[InflightCacheConfig] = None
    pagination: Optional[PaginationConfig] = None
    trace: Optional[bool] = None


# Default values
DEFAULT_PAGINATION_CONFIG = PaginationConfig()
DEFAULT_INFLIGHT_CACHE_CONFIG = InflightCacheConfig()
DEFAULT_TIMEOUT = TimeoutConfig()


def merge_pagination_config(
    config: Optional[PaginationConfig] = None,
    base: Optional[PaginationConfig] = None,
) -> PaginationConfig:
    """Merge user config with defaults (empty field names fall back)."""
    base = base or DEFAULT_PAGINATION_CONFIG
    if config is None:
        return PaginationConfig(
            results_field=base.results_field,
            current_page_field=base.current_page_field,
            page_size_field=base.page_size_field,
            next_page_field=base.next_page_field,
            total_count_field=base.total_count_field,
            default_page_size=base.default_page_size,
        )

    return PaginationConfig(
        results_field=config.results_field or base.results_field,
        current_page_field=config.current_page_field or base.current_page_field,
        page_size_field=config.page_size_field or base.page_size_field,
        next_page_field=config.next_page_field or base.next_page_field,
        total_count_field=config.total_count_field or base.total_count_field,
        default_page_size=config.default_page_size
        if config.default_page_size
        else base.default_page_size,
    )


def merge_inflight_cache_config(
    config: Optional[InflightCacheConfig] = None,
) -> InflightCacheConfig:
    """Merge user config with defaults."""
    if config is None or not config.methods:
        return InflightCacheConfig(methods=list(DEFAULT_INFLIGHT_CACHE_CONFIG.methods))
    return InflightCacheConfig(methods=[method.upper() for method in config.methods])


def merge_plugins(
    defaults: Optional[RequestPlugins] = None,
    overrides: Optional[RequestPlugins] = None,
) -> RequestPlugins:
    """Overlay per-request plugin switches on the client defaults."""
    defaults = defaults or RequestPlugins()
    overrides = overrides or RequestPlugins()

    def pick(name: str):
        value = getattr(overrides, name)
        return value if value is not None else getattr(defaults, name)

    return RequestPlugins(
        inflight_cache=bool(pick("inflight_cache")),
        get_all_pages=bool(pick("get_all_pages")),
        get_all_pages_config=pick("get_all_pages_config"),
        allow_404=bool(pick("allow_404")),
    )


def normalize_timeout(timeout: Union[TimeoutConfig, float, None]) -> TimeoutConfig:
    """Normalize timeout config."""
    if timeout is None:
        return DEFAULT_TIMEOUT
    if isinstance(timeout, (int, float)):
        return TimeoutConfig(connect=timeout, read=timeout, write=timeout)
    return timeout


def is_trace_enabled_by_env() -> bool:
    """Check FETCH_PLUGINS_TRACE for request/response tracing."""
    return os.environ.get("FETCH_PLUGINS_TRACE", "").lower() in ("1", "true", "yes")


def is_ssl_verify_disabled_by_env() -> bool:
    """
    Check if SSL verification is disabled via environment variables.

    Returns True if any of these are set:
    - NODE_TLS_REJECT_UNAUTHORIZED=0
    - SSL_CERT_VERIFY=0
    """
    node_tls = os.environ.get("NODE_TLS_REJECT_UNAUTHORIZED", "")
    ssl_cert_verify = os.environ.get("SSL_CERT_VERIFY", "")
    return node_tls == "0" or ssl_cert_verify == "0"


def validate_config(config: ClientConfig) -> None:
    """Validate client configuration. An empty base_url is allowed."""
    if config.base_url:
        parsed = urlparse(config.base_url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"Invalid base_url: {config.base_url}")

    pagination = config.pagination
    if pagination is not None and pagination.default_page_size is not None:
        if pagination.default_page_size < 1:
            raise ValueError(
                f"default_page_size must be positive, got {pagination.default_page_size}"
            )


@dataclass
class ResolvedConfig:
    """Resolved client configuration with defaults applied."""

    base_url: str
    headers: Dict[str, str]
    timeout: TimeoutConfig
    plugins: RequestPlugins
    inflight: InflightCacheConfig
    pagination: PaginationConfig
    trace: bool


def resolve_config(config: ClientConfig) -> ResolvedConfig:
    """Resolve client configuration with defaults."""
    validate_config(config)

    trace = config.trace if config.trace is not None else is_trace_enabled_by_env()
    resolved = ResolvedConfig(
        base_url=config.base_url,
        headers=dict(config.headers),
        timeout=normalize_timeout(config.timeout),
        plugins=merge_plugins(config.plugins),
        inflight=merge_inflight_cache_config(config.inflight),
        pagination=merge_pagination_config(config.pagination),
        trace=trace,
    )
    logger.debug(
        f"resolve_config: base_url={resolved.base_url!r}, plugins={resolved.plugins}, "
        f"inflight_methods={resolved.inflight.methods}, trace={resolved.trace}"
    )
    return resolved
