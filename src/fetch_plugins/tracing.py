"""
Request/response tracing with rich panels.
"""
import json
from typing import Any, Dict, Mapping, Optional

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax

from .types import FetchResponse, RequestDescriptor

console = Console()

_SENSITIVE_HEADERS = ("authorization", "x-api-key", "proxy-authorization", "cookie")


def mask_header_value(value: Optional[str], visible_chars: int = 15) -> str:
    """Mask a header value, keeping the first characters."""
    if value is None:
        return "<none>"
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def mask_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Mask authorization-like headers for safe logging."""
    masked = dict(headers)
    for key in masked:
        if key.lower() in _SENSITIVE_HEADERS:
            masked[key] = mask_header_value(masked[key])
    return masked


def _format_body(body: Any) -> str:
    if body is None:
        return ""
    if isinstance(body, (dict, list)):
        return json.dumps(body, indent=2, ensure_ascii=False, default=str)
    if isinstance(body, bytes):
        try:
            return body.decode("utf-8")
        except UnicodeDecodeError:
            return f"<binary data: {len(body)} bytes>"
    return str(body)


def print_request(
    descriptor: RequestDescriptor,
    headers: Mapping[str, str],
    target: Optional[Console] = None,
) -> None:
    """Print a request panel."""
    out = target or console
    out.print(
        Panel(
            f"[bold cyan]{descriptor.method.upper()}[/bold cyan] {descriptor.url}",
            title="[bold blue]Request[/bold blue]",
        )
    )
    out.print("[bold]Headers:[/bold]", mask_headers(headers))
    if descriptor.json is not None:
        out.print(
            Panel(
                Syntax(_format_body(descriptor.json), "json"),
                title="[bold]Request Body[/bold]",
            )
        )


def print_response(
    response: FetchResponse,
    url: str,
    target: Optional[Console] = None,
) -> None:
    """Print a response panel."""
    out = target or console
    color = "green" if response.ok else "red"
    out.print(
        Panel(
            f"[bold {color}]{response.status}[/bold {color}] {response.status_text}",
            title=f"[bold blue]Response[/bold blue] ({url})",
        )
    )
    if response.data:
        out.print(
            Panel(
                Syntax(_format_body(response.data), "json"),
                title=f"[bold]Response Body[/bold] (URL: {url})",
            )
        )
