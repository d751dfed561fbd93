"""
Per-request control flow of the router.

``handle_request`` rebuilds the route table from the configuration text on
every call, resolves the request and produces exactly one of: None (no route
matched, the caller passes the request through), a 302 redirect, a proxied
streaming response, or an error response. It never raises.
"""

import logging
from typing import Any, AsyncIterator, Mapping, Optional, Union

import httpx
from fastapi import HTTPException, Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse
from opentelemetry import trace

from path_router.caching.policy import compute_cache_control, is_html_response
from path_router.proxy.forwarder import Forwarder, rewrite_response_headers
from path_router.rewrite.html import (
    RewriteContext,
    build_html_rewriter,
    charset_from_content_type,
    rewrite_html_stream,
)
from path_router.routing.matcher import RouteMatch, compute_target
from path_router.routing.table import (
    ImageCacheConfig,
    build_image_cache_config,
    build_route_table,
    image_cache_enabled,
)
from path_router.routing.url import InvalidUrl, parse_absolute_url, quote_path
from path_router.utils import mask_query, request_path_and_query
from path_router.utils.exception_logging import (
    find_exception_in_exception_groups,
    format_exception_message,
    log_exception_with_details,
)
from path_router.utils.traced_requests import traced_request

tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

RawRoutes = Union[str, Mapping[str, Any], None]


def redirect_response(match: RouteMatch) -> Response:
    return Response(status_code=302, headers={"location": match.target_url})


def error_response(exc: HTTPException) -> Response:
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code)


def _rewrite_context(request: Request, match: RouteMatch) -> Optional[RewriteContext]:
    target = parse_absolute_url(match.target_url)
    if isinstance(target, InvalidUrl):
        return None
    return RewriteContext(
        source_origin=f"{request.url.scheme}://{request.url.netloc}",
        target_origin=target.origin,
        base_path=match.route.base_path,
    )


async def _relay_body(
    body: AsyncIterator[bytes], forwarder: Forwarder, upstream: httpx.Response
) -> AsyncIterator[bytes]:
    # Closing here also runs when the client goes away mid-stream, which
    # aborts the outbound transfer.
    try:
        async for chunk in body:
            yield chunk
    finally:
        await forwarder.aclose(upstream)


async def proxy_to_target(
    request: Request,
    match: RouteMatch,
    image_cache: ImageCacheConfig,
    client: Optional[httpx.AsyncClient] = None,
) -> Response:
    """
    Forward a proxy match and relay the origin's response.

    The Cache-Control header is rewritten by the cache policy and HTML bodies
    are streamed through the rewriter.
    """
    route = match.route
    with traced_request(
        tracer,
        operation="path_router.proxy",
        url=match.target_url,
        start_message=f"[Proxy] {request.method} {request.url.path} -> {match.target_url}",
        extra_attrs={
            "route.pattern": route.pattern,
            "route.kind": route.kind,
            "proxy.method": request.method,
        },
    ) as span:
        forwarder = Forwarder(client)
        try:
            upstream = await forwarder.send(request, match.target_url, route.base_path)
        except HTTPException as e:
            span.set_attribute("proxy.error", str(e.detail))
            await forwarder.aclose()
            raise
        except BaseException:
            await forwarder.aclose()
            raise

        span.set_attribute("proxy.status_code", upstream.status_code)

        try:
            context = _rewrite_context(request, match)
            content_type = upstream.headers.get("content-type", "")
            path, _ = request_path_and_query(request)

            response_headers = list(rewrite_response_headers(upstream.headers, context))
            cache_control = compute_cache_control(
                content_type,
                path,
                image_cache_enabled(image_cache, route),
                upstream.headers.get("cache-control"),
            )

            body: AsyncIterator[bytes] = upstream.aiter_bytes()
            if context is not None and is_html_response(content_type, path):
                span.set_attribute("proxy.html_rewrite", True)
                body = rewrite_html_stream(
                    body,
                    build_html_rewriter(context),
                    charset_from_content_type(content_type),
                )
        except BaseException:
            await forwarder.aclose(upstream)
            raise

        response = StreamingResponse(
            _relay_body(body, forwarder, upstream),
            status_code=upstream.status_code,
        )
        for name, value in response_headers:
            if name.lower() != "cache-control":
                response.headers.append(name, value)
        if cache_control is not None:
            response.headers["cache-control"] = cache_control
        return response


async def handle_request(
    request: Request,
    routes: RawRoutes,
    image_cache: Union[str, bool, list, None] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Optional[Response]:
    """
    Route one request.

    Args:
        request: The inbound request
        routes: Route configuration, JSON text or a decoded mapping
        image_cache: Image cache descriptor (see ``build_image_cache_config``)
        client: Optional httpx client for the outbound call; one is created
            per request when omitted

    Returns:
        None when no route matched, otherwise the response to send
    """
    try:
        table = build_route_table(routes)
        path, query = request_path_and_query(request)
        match = compute_target(path, query, table)
        if match is None:
            return None

        if match.kind == "redirect":
            logger.info(
                f"[Redirect] {request.url.path} -> {mask_query(match.target_url)}"
            )
            return redirect_response(match)

        return await proxy_to_target(
            request, match, build_image_cache_config(image_cache), client
        )
    except HTTPException as e:
        return error_response(e)
    except Exception as e:
        http_exc = find_exception_in_exception_groups(e, HTTPException)
        if http_exc is not None:
            return error_response(http_exc)
        log_exception_with_details(logger, "[Router]", e)
        return PlainTextResponse(
            f"Error: {format_exception_message(e)}", status_code=500
        )


async def forward_unmatched(
    request: Request, origin: str, client: Optional[httpx.AsyncClient] = None
) -> Response:
    """
    Pass a request no route matched through to ``origin``.

    Only the loop marker is added, so an origin that routes back here answers 508.
    """
    path, query = request_path_and_query(request)
    target_url = f"{origin}{quote_path(path)}"
    if query:
        target_url = f"{target_url}?{query}"

    forwarder = Forwarder(client)
    try:
        upstream = await forwarder.send(request, target_url)
    except HTTPException as e:
        await forwarder.aclose()
        return error_response(e)
    except Exception as e:
        await forwarder.aclose()
        log_exception_with_details(logger, "[Passthrough]", e)
        return PlainTextResponse(
            f"Error: {format_exception_message(e)}", status_code=500
        )

    response = StreamingResponse(
        _relay_body(upstream.aiter_bytes(), forwarder, upstream),
        status_code=upstream.status_code,
    )
    for name, value in rewrite_response_headers(upstream.headers, None):
        response.headers.append(name, value)
    return response
