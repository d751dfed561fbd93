from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

from path_router.routing.table import RouteEntry, RouteTable
from path_router.routing.url import quote_path


@dataclass(frozen=True)
class RouteMatch:
    target_url: str
    route: RouteEntry

    @property
    def kind(self) -> str:
        return self.route.kind


def match_route(path: str, table: RouteTable) -> Optional[Tuple[RouteEntry, str]]:
    """
    Find the first route matching ``path``.

    Returns the route and the remaining path below its prefix (``/`` when the
    path is the prefix itself), or None when nothing matches.
    """
    for route in table:
        if route.wildcard:
            prefix = route.prefix
            if path == prefix or path == prefix + "/":
                return route, "/"
            if path.startswith(prefix + "/"):
                return route, path[len(prefix):]
        elif path == route.pattern:
            return route, "/"
    return None


def build_target_url(route: RouteEntry, remaining_path: str, query: str) -> str:
    """Reconstruct the destination URL for a matched route.

    ``remaining_path`` is decoded, as matched; it is percent-encoded again here.
    """
    if route.target_wildcard:
        parts = urlsplit(route.target_base)
        base_path = parts.path.rstrip("/")
        remaining_path = quote_path(remaining_path)
        path = f"{base_path}{remaining_path}" if base_path else remaining_path
        return urlunsplit((parts.scheme, parts.netloc, path, query, ""))

    parts = urlsplit(route.target)
    # The incoming query always replaces the target's own
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def compute_target(path: str, query: str, table: RouteTable) -> Optional[RouteMatch]:
    """
    Resolve an incoming request against the table, or None for pass-through.

    ``path`` is the decoded request path and ``query`` the raw query string.
    They are passed separately because a decoded path may contain ``?`` or ``#``.
    """
    matched = match_route(path or "/", table)
    if matched is None:
        return None

    route, remaining_path = matched
    return RouteMatch(
        target_url=build_target_url(route, remaining_path, query),
        route=route,
    )
