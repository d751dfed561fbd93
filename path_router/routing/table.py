import json
import logging
from dataclasses import dataclass
from typing import Any, FrozenSet, Mapping, Optional, Tuple, Union

from path_router.routing.url import InvalidUrl, parse_absolute_url

logger = logging.getLogger("uvicorn.error")

PROXY_MARKER = "proxy:"
# Older configurations spelled redirects out explicitly
REDIRECT_MARKER = "redirect:"
WILDCARD_SUFFIX = "/*"


class RouteConfigError(ValueError):
    """Raised when a route entry fails structural validation."""


@dataclass(frozen=True)
class _RouteBase:
    pattern: str
    target: str
    wildcard: bool

    @property
    def prefix(self) -> str:
        """Pattern without the trailing ``/*``."""
        if self.wildcard:
            return self.pattern[: -len(WILDCARD_SUFFIX)]
        return self.pattern

    @property
    def base_path(self) -> str:
        """Public mount path, never ending in ``/`` (empty for the root mount)."""
        return self.prefix.rstrip("/")

    @property
    def target_wildcard(self) -> bool:
        return self.target.endswith(WILDCARD_SUFFIX)

    @property
    def target_base(self) -> str:
        if self.target_wildcard:
            return self.target[: -len(WILDCARD_SUFFIX)]
        return self.target


@dataclass(frozen=True)
class ProxyRoute(_RouteBase):
    kind = "proxy"


@dataclass(frozen=True)
class RedirectRoute(_RouteBase):
    kind = "redirect"


RouteEntry = Union[ProxyRoute, RedirectRoute]
RouteTable = Tuple[RouteEntry, ...]
ImageCacheConfig = Union[bool, FrozenSet[str]]


def parse_route_entry(pattern: Any, value: Any) -> RouteEntry:
    """Turn one ``pattern -> descriptor`` pair into a typed route.

    Raises:
        RouteConfigError: the pattern or target is structurally invalid.
    """
    if not isinstance(pattern, str) or not pattern.startswith("/"):
        raise RouteConfigError(f"Route path must start with '/': {pattern!r}")
    if not isinstance(value, str):
        raise RouteConfigError(f"Route target for {pattern} must be a string")

    if value.startswith(PROXY_MARKER):
        route_cls = ProxyRoute
        target = value[len(PROXY_MARKER):]
    elif value.startswith(REDIRECT_MARKER):
        route_cls = RedirectRoute
        target = value[len(REDIRECT_MARKER):]
    else:
        route_cls = RedirectRoute
        target = value
    target = target.strip()

    wildcard = pattern.endswith(WILDCARD_SUFFIX)
    if wildcard and not target.endswith(WILDCARD_SUFFIX):
        logger.warning(
            f"[Routes] {pattern} is a wildcard route but its target {target} is not; "
            "subpaths will not be forwarded"
        )

    base = target[: -len(WILDCARD_SUFFIX)] if target.endswith(WILDCARD_SUFFIX) else target
    parsed = parse_absolute_url(base)
    if isinstance(parsed, InvalidUrl):
        raise RouteConfigError(
            f"Invalid target URL for {pattern}: {target!r} ({parsed.reason})"
        )

    return route_cls(pattern=pattern, target=target, wildcard=wildcard)


def build_route_table(raw_routes: Union[str, Mapping[str, Any], None]) -> RouteTable:
    """
    Build the ordered route table from the raw configuration.

    The configuration is either JSON text or an already decoded mapping. Any
    failure yields an empty table so that every request passes through
    untouched instead of being rejected.
    """
    if raw_routes is None or raw_routes == "":
        return ()

    if isinstance(raw_routes, str):
        try:
            mapping = json.loads(raw_routes)
        except json.JSONDecodeError as e:
            logger.error(f"[Routes] Failed to parse ROUTES: {e}")
            return ()
    else:
        mapping = raw_routes

    if not isinstance(mapping, Mapping):
        logger.error(
            f"[Routes] ROUTES must be an object, got {type(mapping).__name__}"
        )
        return ()

    entries = []
    try:
        for pattern, value in mapping.items():
            entries.append(parse_route_entry(pattern, value))
    except RouteConfigError as e:
        logger.error(f"[Routes] Discarding route table: {e}")
        return ()

    return tuple(entries)


def build_image_cache_config(raw: Union[str, bool, list, None]) -> ImageCacheConfig:
    """
    Parse the image cache descriptor.

    Accepts ``true``/``*`` for every route, ``false`` or nothing to disable, a
    JSON array of route patterns, or a comma separated list of patterns.
    """
    if raw is None:
        return False
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (list, tuple, set, frozenset)):
        return _pattern_set(raw)

    text = str(raw).strip()
    if not text:
        return False
    lowered = text.lower()
    if lowered in ("true", "*"):
        return True
    if lowered == "false":
        return False

    if text.startswith("["):
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(f"[Routes] Failed to parse IMAGE_CACHE, disabling: {e}")
            return False
        if not isinstance(decoded, list):
            logger.warning("[Routes] IMAGE_CACHE must be a list of route paths")
            return False
        return _pattern_set(decoded)

    return _pattern_set(text.split(","))


def _pattern_set(items) -> FrozenSet[str]:
    return frozenset(str(item).strip() for item in items if str(item).strip())


def image_cache_enabled(config: ImageCacheConfig, route: Optional[RouteEntry]) -> bool:
    if isinstance(config, bool):
        return config
    return route is not None and route.pattern in config
