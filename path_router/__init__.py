"""Path-based edge router: proxy or redirect requests by path prefix."""

__version__ = "0.1.0"
