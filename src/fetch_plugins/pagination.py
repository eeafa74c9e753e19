"""
All-pages aggregation for paginated endpoints.

The first page tells us how many pages exist; the remaining pages are
fetched concurrently and their results concatenated in page order.
"""
import asyncio
import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any, Awaitable, Callable, List, Optional
from urllib.parse import parse_qsl, urljoin, urlsplit

from .config import PaginationConfig, merge_pagination_config
from .errors import AggregationFailure, CancellationFailure
from .types import ExecutionMode, FetchResponse, PageDescriptor, RequestDescriptor

logger = logging.getLogger("fetch_plugins.pagination")

SendFunction = Callable[[RequestDescriptor], Awaitable[FetchResponse]]


def _to_int(value: Any, default: Optional[int]) -> Optional[int]:
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_page(data: Any, config: PaginationConfig) -> PageDescriptor:
    """Read pagination metadata from a response body using ``config`` field names."""
    body = data if isinstance(data, Mapping) else {}

    results = body.get(config.results_field) or []
    if not isinstance(results, list):
        results = list(results) if isinstance(results, (tuple, set)) else [results]

    return PageDescriptor(
        page_number=_to_int(body.get(config.current_page_field), 1) or 1,
        page_size=_to_int(body.get(config.page_size_field), None),
        total_count=_to_int(body.get(config.total_count_field), 0) or 0,
        results=results,
        next_page=body.get(config.next_page_field) or None,
    )


class PaginationAggregator:
    """
    Fetch every page of a paginated resource behind one call.

    ``send`` performs a single, non-paginating request; the aggregator uses it
    for the first page and every follow-up page unless ``fetch_all`` is given
    its own send function.

    Example:
        aggregator = PaginationAggregator(transport_send)
        response = await aggregator.fetch_all(descriptor)
        response.data   # items of all pages, in page order
    """

    def __init__(
        self,
        send: SendFunction,
        config: Optional[PaginationConfig] = None,
    ) -> None:
        self._send = send
        self._config = merge_pagination_config(config)

    def config_for(self, descriptor: RequestDescriptor) -> PaginationConfig:
        """Pagination field names for a request (per-request config wins)."""
        if descriptor.pagination is None:
            return self._config
        return merge_pagination_config(descriptor.pagination, self._config)

    def prepare(self, descriptor: RequestDescriptor) -> RequestDescriptor:
        """Add the page-size hint unless the request already carries one."""
        config = self.config_for(descriptor)
        if descriptor.params.get(config.page_size_field):
            return descriptor
        return descriptor.with_params(**{config.page_size_field: config.default_page_size})

    async def fetch_all(
        self,
        descriptor: RequestDescriptor,
        send: Optional[SendFunction] = None,
    ) -> FetchResponse:
        """
        Fetch the first page and, if more pages exist, all remaining ones.

        Returns the first response with ``data`` replaced by the aggregated
        list. If the request's token is cancelled once the first page has
        arrived, the first response is returned unchanged.

        Raises:
            AggregationFailure: a follow-up page failed (no partial result)
        """
        config = self.config_for(descriptor)
        first = self.prepare(descriptor)

        send = send or self._send
        response = await send(first)

        token = first.cancel_token
        if token is not None and token.cancelled:
            logger.debug(f"fetch_all: cancelled after first page of {first.url}, returning it unchanged")
            return response

        page = parse_page(response.data, config)
        results: List[Any] = list(page.results)

        if page.remaining_pages > 0 and page.next_page:
            follow_ups = self.build_follow_up_requests(first, page, config)
            logger.debug(
                f"fetch_all: {first.url} has {page.total_pages} pages, "
                f"fetching {len(follow_ups)} more"
            )
            for page_response in await self._fetch_pages(send, follow_ups, page.page_number + 1):
                results.extend(parse_page(page_response.data, config).results)

        return replace(response, data=results)

    def build_follow_up_requests(
        self,
        first: RequestDescriptor,
        page: PageDescriptor,
        config: PaginationConfig,
    ) -> List[RequestDescriptor]:
        """Requests for pages ``page+1 .. total_pages`` derived from the next-page locator."""
        next_url = urljoin(first.url, str(page.next_page))
        parts = urlsplit(next_url)
        base_url = f"{parts.scheme}://{parts.netloc}"

        grouped: dict = {}
        for key, value in parse_qsl(parts.query, keep_blank_values=True):
            if key != config.current_page_field:
                grouped.setdefault(key, []).append(value)
        base_params = {
            key: values[0] if len(values) == 1 else values
            for key, values in grouped.items()
        }

        requests = []
        for number in range(page.page_number + 1, page.total_pages + 1):
            page_params = dict(base_params)
            page_params[config.current_page_field] = str(number)

            requests.append(
                replace(
                    first,
                    method="GET",
                    base_url=base_url,
                    path=parts.path or "/",
                    params=page_params,
                    json=None,
                    mode=ExecutionMode.DIRECT,
                    pagination=config,
                )
            )
        return requests

    async def _fetch_pages(
        self,
        send: SendFunction,
        requests: List[RequestDescriptor],
        first_number: int,
    ) -> List[FetchResponse]:
        """Send all follow-ups concurrently; fail fast on the first error."""
        tasks = [asyncio.ensure_future(send(request)) for request in requests]
        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise

        failed = [
            (index, task)
            for index, task in enumerate(tasks)
            if task in done and not task.cancelled() and task.exception() is not None
        ]
        if failed:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.wait(pending)

            index, task = failed[0]
            error = task.exception()
            page_number = first_number + index
            if isinstance(error, CancellationFailure):
                raise error
            logger.debug(f"fetch_all: page {page_number} failed: {error!r}")
            raise AggregationFailure(page_number, error, requests[index]) from error

        # Ascending page order, whatever order the responses arrived in
        return [task.result() for task in tasks]
