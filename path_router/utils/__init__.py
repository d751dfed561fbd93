from typing import Tuple
from urllib.parse import urlsplit, urlunsplit

from fastapi import Request


def mask_query(url: str) -> str:
    """Hide query values in URLs that end up in logs; they may carry tokens."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    masked = "&".join(
        f"{pair.split('=', 1)[0]}=****" if "=" in pair else pair
        for pair in parts.query.split("&")
    )
    return urlunsplit((parts.scheme, parts.netloc, parts.path, masked, parts.fragment))


def origin_of(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def request_path_and_query(request: Request) -> Tuple[str, str]:
    """
    Decoded path and raw query string of ``request``, read from the ASGI scope.

    ``request.url`` is rebuilt from the decoded path and split again, so a
    ``%23`` or ``%3F`` in the path would end it early there.
    """
    path = request.scope.get("path") or "/"
    query = request.scope.get("query_string", b"").decode("latin-1")
    return path, query
