"""
Error types for fetch_plugins.

Every failure a caller can observe is one of these, so a de-duplicated
follower and the original caller always see the same typed error.
"""
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .types import FetchResponse, RequestDescriptor


class FetchPluginError(Exception):
    """Base error for fetch_plugins."""

    code = "FETCH_PLUGIN_ERROR"

    def __init__(
        self,
        message: str,
        request: Optional["RequestDescriptor"] = None,
    ) -> None:
        super().__init__(message)
        self.name = type(self).__name__
        self.request = request


class TransportFailure(FetchPluginError):
    """Network or connection level failure (no response was received)."""

    code = "ERR_NETWORK"


class StatusFailure(FetchPluginError):
    """Response status outside the accepted range."""

    code = "ERR_BAD_RESPONSE"

    def __init__(
        self,
        response: "FetchResponse",
        request: Optional["RequestDescriptor"] = None,
    ) -> None:
        super().__init__(
            f"Request failed with status code {response.status}", request
        )
        self.response = response
        self.status = response.status
        if 400 <= response.status < 500:
            self.code = "ERR_BAD_REQUEST"


class CancellationFailure(FetchPluginError):
    """Operation aborted through its cancellation token."""

    code = "ERR_CANCELED"

    def __init__(
        self,
        reason: Any = None,
        request: Optional["RequestDescriptor"] = None,
    ) -> None:
        message = "Operation cancelled"
        if reason is not None:
            message = f"{message}: {reason}"
        super().__init__(message, request)
        self.reason = reason


class AggregationFailure(FetchPluginError):
    """A follow-up page request failed while aggregating pages."""

    code = "ERR_AGGREGATION"

    def __init__(
        self,
        page: int,
        cause: BaseException,
        request: Optional["RequestDescriptor"] = None,
    ) -> None:
        super().__init__(f"Failed to fetch page {page}: {cause}", request)
        self.page = page
        self.cause = cause
        self.__cause__ = cause
