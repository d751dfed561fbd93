import logging
from typing import Iterable, Optional, Tuple

import httpx
from fastapi import HTTPException, Request

from path_router.rewrite.html import RewriteContext
from path_router.utils import mask_query, origin_of
from path_router.vars import LOOP_DETECTION_HEADER, PROXY_TIMEOUT

logger = logging.getLogger("uvicorn.error")

# Hop-by-hop headers that should NOT be forwarded (RFC 2616)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# The origin supplies its own Host; httpx sets Content-Length and only
# advertises encodings it can decode.
STRIPPED_REQUEST_HEADERS = {"host", "content-length", "accept-encoding"}

# The body is streamed decoded and possibly rewritten
STRIPPED_RESPONSE_HEADERS = {"content-length", "content-encoding"}

LOOP_DETECTED_DETAIL = "Loop detected: this request has already passed through the router"


def loop_detected(request: Request) -> bool:
    return LOOP_DETECTION_HEADER in request.headers


def prepare_headers(request: Request, base_path: Optional[str]) -> httpx.Headers:
    """
    Prepare headers for forwarding to the target.

    Every outbound request carries the loop marker. With ``base_path`` set the
    request is a proxied route and also gets X-Forwarded-* headers. Without it
    (pass-through) the other headers go out as received, minus hop-by-hop and Host.
    """
    headers = httpx.Headers(
        [
            (name, value)
            for name, value in request.headers.items()
            if name.lower() not in HOP_BY_HOP_HEADERS
            and name.lower() not in STRIPPED_REQUEST_HEADERS
        ]
    )

    headers[LOOP_DETECTION_HEADER] = "1"
    if base_path is None:
        return headers

    headers["x-forwarded-host"] = request.headers.get("host", "")
    headers["x-forwarded-proto"] = request.url.scheme
    headers["x-forwarded-prefix"] = base_path
    return headers


def rewrite_response_headers(
    headers: httpx.Headers, context: Optional[RewriteContext]
) -> Iterable[Tuple[str, str]]:
    """Headers to relay to the client, with Location mapped onto the mount path."""
    for name, value in headers.multi_items():
        name_lower = name.lower()
        if name_lower in HOP_BY_HOP_HEADERS or name_lower in STRIPPED_RESPONSE_HEADERS:
            continue
        if name_lower == "location" and context is not None:
            value = context.rewrite_reference(value)
        yield name, value


class Forwarder:
    """
    Issues the outbound call for one request.

    Owns the httpx client unless one is handed in, and closes it together with
    the upstream response once the body has been relayed.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = PROXY_TIMEOUT):
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=False,  # Redirects go back to the browser
            )
        return self._client

    async def send(
        self, request: Request, target_url: str, base_path: Optional[str] = None
    ) -> httpx.Response:
        """
        Forward ``request`` to ``target_url`` and return the streaming response.

        Raises:
            HTTPException: 508 when the loop marker is already present, 502 when
                the origin cannot be reached. Neither is retried.
        """
        if loop_detected(request):
            logger.warning(
                f"[Proxy] Loop detected for {request.method} {request.url.path}, refusing to forward"
            )
            raise HTTPException(status_code=508, detail=LOOP_DETECTED_DETAIL)

        client = self._get_client()
        body = await request.body()
        outbound = client.build_request(
            method=request.method,
            url=target_url,
            headers=prepare_headers(request, base_path),
            content=body,
        )

        try:
            return await client.send(outbound, stream=True)
        except httpx.TransportError as e:
            origin = origin_of(target_url)
            logger.error(f"[Proxy] Failed to reach {origin} for {mask_query(target_url)}: {e!r}")
            raise HTTPException(
                status_code=502, detail=f"Bad gateway: unable to reach {origin}"
            )

    async def aclose(self, response: Optional[httpx.Response] = None) -> None:
        try:
            if response is not None:
                await response.aclose()
        finally:
            if self._owns_client and self._client is not None:
                await self._client.aclose()
