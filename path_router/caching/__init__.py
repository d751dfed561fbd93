from .policy import compute_cache_control, is_html_response

__all__ = ["compute_cache_control", "is_html_response"]
