"""Helpers for driving the router with real ASGI requests in tests."""

from typing import Callable, Dict, List, Optional

import httpx
from starlette.requests import Request


def make_request(
    url: str = "https://source.example/",
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    body: bytes = b"",
) -> Request:
    """Build a real Starlette request for handler-level tests."""
    parts = httpx.URL(url)
    raw_headers = [(b"host", parts.netloc)]
    for name, value in (headers or {}).items():
        if name.lower() == "host":
            raw_headers[0] = (b"host", value.encode("latin-1"))
            continue
        raw_headers.append((name.lower().encode("latin-1"), value.encode("latin-1")))

    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": parts.scheme,
        "server": (parts.host, parts.port or (443 if parts.scheme == "https" else 80)),
        "client": ("192.168.1.100", 51234),
        "root_path": "",
        "path": parts.path,
        "raw_path": parts.raw_path.split(b"?", 1)[0],
        "query_string": parts.query,
        "headers": raw_headers,
    }

    sent = False

    async def receive():
        nonlocal sent
        if sent:
            return {"type": "http.disconnect"}
        sent = True
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


async def read_body(response) -> bytes:
    return b"".join([chunk async for chunk in response.body_iterator])


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every outbound request."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


