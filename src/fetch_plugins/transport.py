"""
Transport collaborator over httpx.

The transport sends one described request and reports the outcome as a
``FetchResponse`` or one of the typed failures. It knows nothing about
de-duplication or pagination.
"""
import json
import logging
from typing import Any, Dict, Optional, Protocol

import httpx
from rich.console import Console

from .cancellation import CancellationToken, run_with_token
from .config import TimeoutConfig, is_ssl_verify_disabled_by_env
from .errors import CancellationFailure, StatusFailure, TransportFailure
from .tracing import print_request, print_response
from .types import FetchResponse, RequestDescriptor

logger = logging.getLogger("fetch_plugins.transport")


class Transport(Protocol):
    """Transport interface consumed by the client."""

    async def send(
        self,
        descriptor: RequestDescriptor,
        token: Optional[CancellationToken] = None,
    ) -> FetchResponse:
        """Send a request and return its response."""
        ...

    async def aclose(self) -> None:
        """Release resources."""
        ...


def _deserialize(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


class HttpxTransport:
    """Transport implementation backed by ``httpx.AsyncClient``."""

    def __init__(
        self,
        httpx_client: Optional[httpx.AsyncClient] = None,
        *,
        timeout: Optional[TimeoutConfig] = None,
        trace: bool = False,
        trace_console: Optional[Console] = None,
    ) -> None:
        if httpx_client is not None:
            self._client = httpx_client
        else:
            timeout = timeout or TimeoutConfig()
            # NODE_TLS_REJECT_UNAUTHORIZED=0 or SSL_CERT_VERIFY=0 will disable SSL verification
            verify_ssl = not is_ssl_verify_disabled_by_env()
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    connect=timeout.connect,
                    read=timeout.read,
                    write=timeout.write,
                    pool=timeout.connect,
                ),
                verify=verify_ssl,
            )
        self._trace = trace
        self._trace_console = trace_console

    async def send(
        self,
        descriptor: RequestDescriptor,
        token: Optional[CancellationToken] = None,
    ) -> FetchResponse:
        """
        Send ``descriptor``.

        Raises:
            CancellationFailure: token cancelled before or during the request
            TransportFailure: no response could be obtained
            StatusFailure: ``descriptor.validate_status`` rejected the status
        """
        token = token if token is not None else descriptor.cancel_token
        url = descriptor.url
        headers = {"accept": "application/json", **dict(descriptor.headers)}

        logger.debug(f"HttpxTransport.send: method={descriptor.method}, url={url}")
        if self._trace:
            print_request(descriptor, headers, self._trace_console)

        request_kwargs: Dict[str, Any] = {}
        if descriptor.json is not None:
            request_kwargs["json"] = descriptor.json
        if descriptor.timeout is not None:
            request_kwargs["timeout"] = descriptor.timeout

        try:
            response = await run_with_token(
                self._client.request(
                    descriptor.method.upper(),
                    url,
                    headers=headers,
                    **request_kwargs,
                ),
                token,
            )
        except CancellationFailure as error:
            logger.debug(f"HttpxTransport.send: cancelled {url} ({error.reason!r})")
            error.request = descriptor
            raise
        except httpx.TransportError as error:
            logger.debug(f"HttpxTransport.send: transport error for {url}: {error!r}")
            raise TransportFailure(f"Network Error: {error}", descriptor) from error

        result = FetchResponse(
            status=response.status_code,
            status_text=response.reason_phrase or "",
            headers=dict(response.headers),
            data=_deserialize(response.text),
            ok=200 <= response.status_code < 300,
            request=descriptor,
        )

        if self._trace:
            print_response(result, url, self._trace_console)

        if not descriptor.validate_status(result.status):
            logger.debug(f"HttpxTransport.send: rejected status {result.status} for {url}")
            raise StatusFailure(result, descriptor)

        return result

    async def aclose(self) -> None:
        """Close the underlying httpx client."""
        await self._client.aclose()
