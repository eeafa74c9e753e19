"""
Request builder utilities for fetch_plugins.
"""
from typing import Any, List, Mapping, Optional, Tuple
from urllib.parse import urlencode, urljoin, urlparse


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def normalize_params(params: Optional[Mapping[str, Any]]) -> List[Tuple[str, str]]:
    """
    Flatten a query parameter mapping into ``(key, value)`` string pairs.

    Keys keep their insertion order. ``None`` values are dropped, lists and
    tuples expand to repeated keys and any other value is stringified.
    """
    pairs: List[Tuple[str, str]] = []
    if not params:
        return pairs

    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend(
                (str(key), _stringify(item)) for item in value if item is not None
            )
        else:
            pairs.append((str(key), _stringify(value)))
    return pairs


def join_url(base_url: str, path: str) -> str:
    """Join base URL and path without a query string."""
    # Absolute URLs ignore the base, like a browser would
    if urlparse(path).scheme:
        return path

    if not base_url:
        return path

    if path.startswith("/"):
        parsed = urlparse(base_url)
        base_path = parsed.path.rstrip("/")
        return f"{parsed.scheme}://{parsed.netloc}{base_path}{path}"

    if path:
        if not base_url.endswith("/"):
            base_url = base_url + "/"
        return urljoin(base_url, path)

    return base_url


def build_url(
    base_url: str,
    path: str,
    params: Optional[Mapping[str, Any]] = None,
) -> str:
    """Build full URL from base, path and query parameters."""
    url = join_url(base_url, path)

    pairs = normalize_params(params)
    if pairs:
        query_str = urlencode(pairs)
        separator = "&" if "?" in url else "?"
        url = f"{url}{separator}{query_str}"

    return url
