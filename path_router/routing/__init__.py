from .table import (
    ProxyRoute,
    RedirectRoute,
    RouteConfigError,
    RouteEntry,
    RouteTable,
    ImageCacheConfig,
    build_route_table,
    build_image_cache_config,
    image_cache_enabled,
)
from .matcher import RouteMatch, match_route, compute_target
from .url import ParsedUrl, InvalidUrl, parse_absolute_url, quote_path

__all__ = [
    "ProxyRoute",
    "RedirectRoute",
    "RouteConfigError",
    "RouteEntry",
    "RouteTable",
    "ImageCacheConfig",
    "build_route_table",
    "build_image_cache_config",
    "image_cache_enabled",
    "RouteMatch",
    "match_route",
    "compute_target",
    "ParsedUrl",
    "InvalidUrl",
    "parse_absolute_url",
    "quote_path",
]
