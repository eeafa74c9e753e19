"""
Canonical request keys used for in-flight de-duplication.
"""
from typing import TYPE_CHECKING
from urllib.parse import urlencode

from .request_builder import join_url, normalize_params

if TYPE_CHECKING:
    from .types import RequestDescriptor


def encode_request_key(descriptor: "RequestDescriptor") -> str:
    """
    Encode the identity of a request as a stable string.

    Only method, base URL, path and query parameters take part. Parameters are
    sorted by key so insertion order never changes the key; repeated values
    for one key keep their order. Headers, body and cancellation token are
    ignored.
    """
    method = (descriptor.method or "GET").upper()
    url = join_url(descriptor.base_url, descriptor.path)

    # sort() is stable, so repeated values for one key stay in order
    pairs = sorted(normalize_params(descriptor.params), key=lambda pair: pair[0])
    query = urlencode(pairs)

    return f"{method} {url}?{query}" if query else f"{method} {url}"
