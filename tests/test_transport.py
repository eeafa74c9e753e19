"""
Tests for HttpxTransport and request tracing.
"""
from io import StringIO

import httpx
import pytest
from rich.console import Console

from fetch_plugins import (
    CancellationFailure,
    CancellationToken,
    HttpxTransport,
    RequestDescriptor,
    StatusFailure,
    TransportFailure,
    validate_status_allow_404,
)
from fetch_plugins.tracing import mask_header_value, mask_headers

from tests.conftest import BASE_URL, ErrorMockAsyncTransport, MockAsyncTransport


def descriptor(**kwargs) -> RequestDescriptor:
    return RequestDescriptor(base_url=BASE_URL, path="/api/data", **kwargs)


class TestHttpxTransport:
    """Tests for HttpxTransport.send."""

    @pytest.mark.asyncio
    async def test_json_response(self, mock_async_transport):
        """Should parse JSON bodies."""
        transport = HttpxTransport(httpx.AsyncClient(transport=mock_async_transport))
        response = await transport.send(descriptor(params={"q": "x"}))
        await transport.aclose()

        assert response.status == 200
        assert response.ok is True
        assert response.data == {"success": True}
        assert str(mock_async_transport.requests[0].url) == f"{BASE_URL}/api/data?q=x"

    @pytest.mark.asyncio
    async def test_text_response(self):
        """Should fall back to text for non-JSON bodies."""
        mock = MockAsyncTransport(response_content=b"plain", response_headers={"content-type": "text/plain"})
        transport = HttpxTransport(httpx.AsyncClient(transport=mock))
        response = await transport.send(descriptor())
        await transport.aclose()

        assert response.data == "plain"

    @pytest.mark.asyncio
    async def test_empty_response(self):
        """Should give None for empty bodies."""
        mock = MockAsyncTransport(response_status=204, response_content=b"")
        transport = HttpxTransport(httpx.AsyncClient(transport=mock))
        response = await transport.send(descriptor())
        await transport.aclose()

        assert response.status == 204
        assert response.data is None

    @pytest.mark.asyncio
    async def test_json_body_is_sent(self, mock_async_transport):
        """Should send the JSON body."""
        transport = HttpxTransport(httpx.AsyncClient(transport=mock_async_transport))
        await transport.send(descriptor(method="POST", json={"name": "x"}))
        await transport.aclose()

        sent = mock_async_transport.requests[0]
        assert sent.method == "POST"
        assert sent.content == b'{"name":"x"}' or sent.content == b'{"name": "x"}'

    @pytest.mark.asyncio
    async def test_status_failure(self):
        """Should reject statuses the validator refuses."""
        transport = HttpxTransport(httpx.AsyncClient(transport=MockAsyncTransport(response_status=503)))
        with pytest.raises(StatusFailure) as exc_info:
            await transport.send(descriptor())
        await transport.aclose()

        assert exc_info.value.status == 503
        assert exc_info.value.response.ok is False

    @pytest.mark.asyncio
    async def test_custom_validator(self):
        """Should accept statuses the validator allows."""
        transport = HttpxTransport(httpx.AsyncClient(transport=MockAsyncTransport(response_status=404)))
        response = await transport.send(descriptor(validate_status=validate_status_allow_404))
        await transport.aclose()

        assert response.status == 404

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        """Should wrap httpx transport errors."""
        transport = HttpxTransport(
            httpx.AsyncClient(transport=ErrorMockAsyncTransport(httpx.ReadTimeout("slow")))
        )
        with pytest.raises(TransportFailure, match="Network Error"):
            await transport.send(descriptor())
        await transport.aclose()

    @pytest.mark.asyncio
    async def test_pre_cancelled_token(self, mock_async_transport):
        """Should not send when the token is already cancelled."""
        token = CancellationToken()
        token.cancel("stale")
        transport = HttpxTransport(httpx.AsyncClient(transport=mock_async_transport))
        with pytest.raises(CancellationFailure) as exc_info:
            await transport.send(descriptor(cancel_token=token))
        await transport.aclose()

        assert mock_async_transport.requests == []
        assert exc_info.value.request is not None


class TestTracing:
    """Tests for rich request/response tracing."""

    def test_mask_header_value(self):
        """Should keep the first characters only."""
        assert mask_header_value("short") == "*****"
        assert mask_header_value("Bearer abcdefghijklmnop") == "Bearer abcdefgh" + "*" * 8
        assert mask_header_value(None) == "<none>"

    def test_mask_headers(self):
        """Should mask sensitive headers only."""
        masked = mask_headers({"Authorization": "secret", "Accept": "application/json"})
        assert masked == {"Authorization": "******", "Accept": "application/json"}

    @pytest.mark.asyncio
    async def test_trace_output(self, mock_async_transport):
        """Should print request and response panels without secrets."""
        output = StringIO()
        transport = HttpxTransport(
            httpx.AsyncClient(transport=mock_async_transport),
            trace=True,
            trace_console=Console(file=output, width=200),
        )
        await transport.send(descriptor(headers={"Authorization": "topsecret"}))
        await transport.aclose()

        printed = output.getvalue()
        assert "Request" in printed
        assert "Response" in printed
        assert f"{BASE_URL}/api/data" in printed
        assert "topsecret" not in printed
