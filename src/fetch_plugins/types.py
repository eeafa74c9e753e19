"""
Type definitions for fetch_plugins.
"""
import asyncio
import enum
import math
from dataclasses import dataclass, field, replace
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Generic,
    List,
    Mapping,
    Optional,
    TypeVar,
)

from .config import PaginationConfig, validate_status_2xx
from .request_builder import build_url

if TYPE_CHECKING:
    from .cancellation import CancellationToken

T = TypeVar("T")


class ExecutionMode(enum.Flag):
    """How the dispatcher executes a request."""

    DIRECT = 0
    DEDUPLICATE = enum.auto()
    PAGINATE = enum.auto()


@dataclass(frozen=True)
class RequestDescriptor:
    """
    Immutable description of a request.

    Components never mutate a descriptor; they derive new ones with
    ``dataclasses.replace`` (see ``with_params``).
    """

    method: str = "GET"
    base_url: str = ""
    path: str = "/"
    params: Mapping[str, Any] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    json: Any = None
    cancel_token: Optional["CancellationToken"] = None
    mode: ExecutionMode = ExecutionMode.DIRECT
    pagination: Optional[PaginationConfig] = None
    validate_status: Callable[[int], bool] = validate_status_2xx
    timeout: Optional[float] = None

    @property
    def url(self) -> str:
        """Full URL including the query string."""
        return build_url(self.base_url, self.path, self.params)

    def with_params(self, **updates: Any) -> "RequestDescriptor":
        """Return a copy with the given query parameters set."""
        params = dict(self.params)
        params.update(updates)
        return replace(self, params=params)


@dataclass
class FetchResponse:
    """Response from the transport."""

    status: int
    status_text: str
    headers: Dict[str, str]
    data: Any
    ok: bool
    request: Optional[RequestDescriptor] = None


@dataclass
class PageDescriptor:
    """Pagination metadata read from one response body."""

    page_number: int
    page_size: Optional[int]
    total_count: int
    results: List[Any]
    next_page: Optional[str] = None

    @property
    def total_pages(self) -> int:
        """ceil(total_count / page_size); the current page if size is unknown."""
        if not self.page_size or self.page_size <= 0:
            return self.page_number
        return math.ceil(self.total_count / self.page_size)

    @property
    def remaining_pages(self) -> int:
        """Pages after the current one."""
        return max(self.total_pages - self.page_number, 0)


@dataclass
class InflightEntry(Generic[T]):
    """Pending operation shared by every caller of one request key."""

    task: "asyncio.Task[T]"
    """Task that settles with the shared outcome."""

    subscribers: int = 1
    """Number of callers waiting on this entry."""

    started_at: float = 0
    """When the operation was started (Unix timestamp)."""

    cancel_token: Optional["CancellationToken"] = None
    """Token of the caller that started the operation."""

    @property
    def cancelled(self) -> bool:
        """Whether the leading caller has cancelled its request."""
        return self.cancel_token is not None and self.cancel_token.cancelled


class InflightEventType(str, enum.Enum):
    """Event types for in-flight de-duplication."""

    LEAD = "inflight:lead"
    JOIN = "inflight:join"
    COMPLETE = "inflight:complete"
    ERROR = "inflight:error"


@dataclass
class InflightEvent:
    """In-flight cache event."""

    type: InflightEventType
    key: str
    timestamp: float
    metadata: Optional[Dict[str, Any]] = None


InflightEventListener = Callable[[InflightEvent], None]
"""Event listener type."""
