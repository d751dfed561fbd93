import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from path_router.proxy.handler import forward_unmatched, handle_request
from path_router.vars import FALLBACK_ORIGIN, IMAGE_CACHE, ROUTES

router = APIRouter()

logger = logging.getLogger("uvicorn.error")

PROXY_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


def _route_config(request: Request):
    """Settings handed to create_app win over the environment."""
    state = request.app.state
    routes = getattr(state, "routes", None)
    image_cache = getattr(state, "image_cache", None)
    fallback_origin = getattr(state, "fallback_origin", None)
    return (
        ROUTES if routes is None else routes,
        IMAGE_CACHE if image_cache is None else image_cache,
        FALLBACK_ORIGIN if fallback_origin is None else fallback_origin,
    )


@router.api_route("/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def route_request(request: Request, path: str) -> Response:
    """Catch-all route: redirect, proxy, or pass the request through."""
    routes, image_cache, fallback_origin = _route_config(request)
    client = getattr(request.app.state, "http_client", None)

    response = await handle_request(request, routes, image_cache, client)
    if response is not None:
        return response

    if fallback_origin:
        logger.debug(
            f"[Passthrough] {request.method} {request.url.path} -> {fallback_origin}"
        )
        return await forward_unmatched(request, fallback_origin, client)

    raise HTTPException(status_code=404, detail="Not Found")
