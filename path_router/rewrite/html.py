"""
Streaming HTML rewriting for proxied applications.

A proxied application thinks it lives at the root of its own origin. When it
is served under a path such as ``/app-one`` its documents are rewritten on
the fly so that:

- a ``<base href="/app-one/">`` tag is injected as the first child of
  ``<head>``; browsers then resolve ``./x``, ``../x`` and bare file names
  against the mount path,
- ``href``/``src`` values that are absolute self references to the proxied
  origin, or root-relative paths, are mapped onto the mount path,
- ``<meta content>`` values that are absolute self references are mapped the
  same way (Open Graph and similar metadata).

The document is processed with the push-based ``html.parser.HTMLParser``:
every decoded chunk is fed as it arrives and whatever the parser has fully
consumed is emitted straight away, so the body is never held in memory as a
whole. Element handlers run before any child of the element is emitted.
"""

import codecs
import re
from dataclasses import dataclass, field
from html import escape
from html.parser import HTMLParser
from typing import AsyncIterator, Callable, List, Optional, Tuple

from path_router.routing.url import InvalidUrl, ParsedUrl, parse_absolute_url

URL_ATTRIBUTES = ("href", "src")

_CHARSET_RE = re.compile(r"charset=[\"']?([^;\"'\s]+)", re.IGNORECASE)


@dataclass(frozen=True)
class RewriteContext:
    """Where the proxied app is mounted and where it really lives."""

    source_origin: str
    target_origin: str
    base_path: str

    @property
    def base_href(self) -> str:
        return self.base_path.rstrip("/") + "/"

    def map_absolute(self, parsed: ParsedUrl) -> Optional[str]:
        """Map an absolute URL on the target origin onto the public path."""
        if parsed.origin != self.target_origin:
            return None
        return f"{self.source_origin}{self.base_path}{parsed.path_query_fragment}"

    def rewrite_reference(self, value: str) -> str:
        """Rewrite an href/src value."""
        parsed = parse_absolute_url(value)
        if isinstance(parsed, InvalidUrl):
            # Relative. Only root-relative paths need the mount path, the
            # rest resolve against the injected base tag.
            # "//host/x" also starts with "/" but names another host: left as is.
            if value.startswith("/") and not value.startswith("//"):
                return f"{self.base_path}{value}"
            return value
        mapped = self.map_absolute(parsed)
        return value if mapped is None else mapped

    def rewrite_absolute_only(self, value: str) -> str:
        parsed = parse_absolute_url(value)
        if isinstance(parsed, InvalidUrl):
            return value
        mapped = self.map_absolute(parsed)
        return value if mapped is None else mapped


@dataclass
class Element:
    """A start tag as seen by element handlers."""

    tag: str
    attrs: List[Tuple[str, Optional[str]]]
    self_closing: bool = False
    modified: bool = False
    prepended: List[str] = field(default_factory=list)

    def get_attribute(self, name: str) -> Optional[str]:
        for key, value in self.attrs:
            if key == name:
                return value
        return None

    def set_attribute(self, name: str, value: str) -> None:
        for i, (key, current) in enumerate(self.attrs):
            if key == name:
                if current != value:
                    self.attrs[i] = (key, value)
                    self.modified = True
                return
        self.attrs.append((name, value))
        self.modified = True

    def prepend(self, html: str) -> None:
        """Insert raw markup as the first child of this element."""
        self.prepended.append(html)

    def serialize(self) -> str:
        parts = [self.tag]
        for key, value in self.attrs:
            if value is None:
                parts.append(key)
            else:
                parts.append(f'{key}="{escape(value, quote=True)}"')
        closing = " />" if self.self_closing else ">"
        return "<" + " ".join(parts) + closing


ElementHandler = Callable[[Element], None]


class BaseTagInjector:
    """Prepends ``<base href>`` to the document's first ``<head>``."""

    selector = "head"

    def __init__(self, context: RewriteContext):
        self.context = context
        self.injected = False

    def __call__(self, element: Element) -> None:
        if self.injected or element.self_closing:
            return
        element.prepend(f'<base href="{escape(self.context.base_href, quote=True)}">')
        self.injected = True


class AttributeRewriter:
    """Maps href/src (and meta content) values onto the mount path."""

    selector = "*"

    def __init__(self, context: RewriteContext):
        self.context = context

    def __call__(self, element: Element) -> None:
        for name in URL_ATTRIBUTES:
            value = element.get_attribute(name)
            if value:
                element.set_attribute(name, self.context.rewrite_reference(value))

        if element.tag == "meta":
            content = element.get_attribute("content")
            if content:
                element.set_attribute(
                    "content", self.context.rewrite_absolute_only(content)
                )


class _EmittingParser(HTMLParser):
    """HTMLParser that re-emits the document, running handlers on start tags."""

    def __init__(self, handlers: List[Tuple[str, ElementHandler]]):
        super().__init__(convert_charrefs=False)
        self._handlers = handlers
        self._out: List[str] = []

    def drain(self) -> str:
        text = "".join(self._out)
        self._out.clear()
        return text

    def _start(self, tag: str, attrs, self_closing: bool) -> None:
        element = Element(tag=tag, attrs=list(attrs), self_closing=self_closing)
        for selector, handler in self._handlers:
            if selector == "*" or selector == tag:
                handler(element)

        if element.modified:
            self._out.append(element.serialize())
        else:
            self._out.append(self.get_starttag_text() or element.serialize())
        self._out.extend(element.prepended)

    def handle_starttag(self, tag, attrs):
        self._start(tag, attrs, self_closing=False)

    def handle_startendtag(self, tag, attrs):
        self._start(tag, attrs, self_closing=True)

    def handle_endtag(self, tag):
        self._out.append(f"</{tag}>")

    def handle_data(self, data):
        self._out.append(data)

    def handle_entityref(self, name):
        self._out.append(f"&{name};")

    def handle_charref(self, name):
        self._out.append(f"&#{name};")

    def handle_comment(self, data):
        self._out.append(f"<!--{data}-->")

    def handle_decl(self, decl):
        self._out.append(f"<!{decl}>")

    def handle_pi(self, data):
        self._out.append(f"<?{data}>")

    def unknown_decl(self, data):
        self._out.append(f"<![{data}]>")


class StreamingHtmlRewriter:
    """
    Push-based document transform with per-selector element handlers.

    Selectors are a tag name or ``*``. Handlers registered first run first.

    Example:
        rewriter = StreamingHtmlRewriter().on("head", inject_base)
        out = rewriter.feed(chunk) ... + rewriter.close()
    """

    def __init__(self):
        self._handlers: List[Tuple[str, ElementHandler]] = []
        self._parser: Optional[_EmittingParser] = None

    def on(self, selector: str, handler: ElementHandler) -> "StreamingHtmlRewriter":
        if self._parser is not None:
            raise RuntimeError("Handlers must be registered before feeding data")
        self._handlers.append((selector.lower(), handler))
        return self

    def feed(self, text: str) -> str:
        if self._parser is None:
            self._parser = _EmittingParser(self._handlers)
        self._parser.feed(text)
        return self._parser.drain()

    def close(self) -> str:
        if self._parser is None:
            return ""
        self._parser.close()
        return self._parser.drain()


def build_html_rewriter(context: RewriteContext) -> StreamingHtmlRewriter:
    base_injector = BaseTagInjector(context)
    attribute_rewriter = AttributeRewriter(context)
    return (
        StreamingHtmlRewriter()
        .on(base_injector.selector, base_injector)
        .on(attribute_rewriter.selector, attribute_rewriter)
    )


def charset_from_content_type(content_type: Optional[str], default: str = "utf-8") -> str:
    match = _CHARSET_RE.search(content_type or "")
    if not match:
        return default
    charset = match.group(1).lower()
    try:
        codecs.lookup(charset)
    except LookupError:
        return default
    return charset


async def rewrite_html_stream(
    chunks: AsyncIterator[bytes],
    rewriter: StreamingHtmlRewriter,
    charset: str = "utf-8",
) -> AsyncIterator[bytes]:
    """Apply ``rewriter`` to a byte stream, yielding output as it is produced."""
    decoder = codecs.getincrementaldecoder(charset)(errors="replace")
    # Stateful, so codecs with a byte order mark write it once
    encoder = codecs.getincrementalencoder(charset)(errors="xmlcharrefreplace")
    async for chunk in chunks:
        text = rewriter.feed(decoder.decode(chunk))
        if text:
            yield encoder.encode(text)

    tail = rewriter.feed(decoder.decode(b"", final=True)) + rewriter.close()
    tail_bytes = encoder.encode(tail, final=True)
    if tail_bytes:
        yield tail_bytes
