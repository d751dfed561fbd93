from typing import Callable, Dict, Optional

import httpx
import pytest

from path_router.utils_tests.asgi import RecordingTransport


@pytest.fixture
def origin():
    """Factory for an httpx client served by a canned origin handler."""

    def _create(
        status_code: int = 200,
        headers: Optional[Dict[str, str]] = None,
        content: bytes = b"test content",
        handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
    ):
        def _default(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status_code, headers=headers or {}, content=content)

        transport = RecordingTransport(handler or _default)
        return httpx.AsyncClient(transport=transport), transport

    return _create
