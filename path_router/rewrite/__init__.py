from .html import (
    RewriteContext,
    StreamingHtmlRewriter,
    build_html_rewriter,
    charset_from_content_type,
    rewrite_html_stream,
)

__all__ = [
    "RewriteContext",
    "StreamingHtmlRewriter",
    "build_html_rewriter",
    "charset_from_content_type",
    "rewrite_html_stream",
]
