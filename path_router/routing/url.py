"""
Absolute URL parsing with an explicit success/failure result.

Callers branch on the returned type instead of catching exceptions, which is
how relative references are told apart from absolute ones in the rewriter.
"""

import re
from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import quote, urlsplit

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")

# Schemes whose URLs must name a host to be valid
_HIERARCHICAL_SCHEMES = {"http", "https", "ws", "wss", "ftp"}

_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}


@dataclass(frozen=True)
class ParsedUrl:
    scheme: str
    host: str
    port: Optional[int]
    path: str
    query: str
    fragment: str

    @property
    def origin(self) -> str:
        """Scheme, host and non-default port, e.g. ``https://example.com:8443``."""
        if not self.host:
            # Opaque origin (mailto:, data:, javascript: ...)
            return "null"
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.port is None or self.port == _DEFAULT_PORTS.get(self.scheme):
            return f"{self.scheme}://{host}"
        return f"{self.scheme}://{host}:{self.port}"

    @property
    def path_query_fragment(self) -> str:
        path = self.path or "/"
        query = f"?{self.query}" if self.query else ""
        fragment = f"#{self.fragment}" if self.fragment else ""
        return f"{path}{query}{fragment}"


@dataclass(frozen=True)
class InvalidUrl:
    value: str
    reason: str


UrlParseResult = Union[ParsedUrl, InvalidUrl]


def parse_absolute_url(value: str) -> UrlParseResult:
    """Parse ``value`` as an absolute URL.

    Returns a ``ParsedUrl`` on success. Relative references, empty strings and
    structurally broken URLs (bad scheme, missing host, bad port) come back as
    ``InvalidUrl`` carrying the reason.
    """
    if not isinstance(value, str) or not value.strip():
        return InvalidUrl(value=str(value), reason="empty url")

    candidate = value.strip()
    try:
        parts = urlsplit(candidate)
    except ValueError as e:
        return InvalidUrl(value=candidate, reason=str(e))

    if not parts.scheme or not _SCHEME_RE.match(parts.scheme):
        return InvalidUrl(value=candidate, reason="missing scheme")

    scheme = parts.scheme.lower()
    try:
        port = parts.port
        host = parts.hostname or ""
    except ValueError as e:
        return InvalidUrl(value=candidate, reason=str(e))

    if scheme in _HIERARCHICAL_SCHEMES and not host:
        return InvalidUrl(value=candidate, reason="missing host")

    return ParsedUrl(
        scheme=scheme,
        host=host.lower(),
        port=port,
        path=parts.path,
        query=parts.query,
        fragment=parts.fragment,
    )


# Sub-delimiters and ":@" are legal in a path segment; "%", "?" and "#" are not
_PATH_SAFE = "/:@!$&'()*+,;=~"


def quote_path(path: str) -> str:
    """Percent-encode a decoded request path for use in an outbound URL."""
    return quote(path, safe=_PATH_SAFE)
