"""
Cache-Control policy for proxied responses.

Rules are evaluated in order and the first one that applies wins:

1. content-hashed JS/CSS served with a restrictive upstream header is made immutable
2. images on routes with image caching enabled get a week when upstream is restrictive
3. responses without any upstream header get a default (HTML is revalidated)
4. anything else keeps the upstream header
"""

import re
from typing import Optional

IMMUTABLE = "public, max-age=31536000, immutable"
IMAGE_CACHE = "public, max-age=604800"
HTML_DEFAULT = "no-cache"
ASSET_DEFAULT = "public, max-age=31536000"

RESTRICTIVE_DIRECTIVES = ("max-age=0", "no-cache", "no-store", "must-revalidate")

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")

IMAGE_EXTENSIONS = {
    "jpg",
    "jpeg",
    "png",
    "gif",
    "webp",
    "svg",
    "ico",
    "bmp",
    "avif",
    "tiff",
    "tif",
}

# e.g. index-353f0761.js, main.a1b2c3d4e5.css
_HASHED_ASSET_RE = re.compile(r"[.\-][A-Za-z0-9]{8,}\.(?:js|css)$")


def _filename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def is_hashed_asset(path: str) -> bool:
    return bool(_HASHED_ASSET_RE.search(_filename(path)))


def is_image_path(path: str) -> bool:
    name = _filename(path)
    if "." not in name:
        return False
    return name.rsplit(".", 1)[-1].lower() in IMAGE_EXTENSIONS


def is_html_response(content_type: Optional[str], path: str) -> bool:
    lowered = (content_type or "").lower()
    if any(html_type in lowered for html_type in HTML_CONTENT_TYPES):
        return True
    return path.lower().endswith(".html")


def is_restrictive(cache_control: Optional[str]) -> bool:
    if not cache_control:
        return False
    lowered = cache_control.lower()
    return any(directive in lowered for directive in RESTRICTIVE_DIRECTIVES)


def compute_cache_control(
    content_type: Optional[str],
    path: str,
    image_cache_enabled: bool,
    upstream: Optional[str],
) -> Optional[str]:
    """
    Decide the outgoing Cache-Control value.

    Args:
        content_type: Content-Type of the upstream response
        path: Path of the response, used for the filename heuristics
        image_cache_enabled: Whether the matched route opted into image caching
        upstream: Cache-Control sent by the origin, if any

    Returns:
        The value to send. Equal to ``upstream`` when the policy leaves it alone.
    """
    restrictive = is_restrictive(upstream)

    if is_hashed_asset(path) and restrictive:
        return IMMUTABLE

    if is_image_path(path) and image_cache_enabled and restrictive:
        return IMAGE_CACHE

    if upstream is None:
        return HTML_DEFAULT if is_html_response(content_type, path) else ASSET_DEFAULT

    return upstream
