from .forwarder import Forwarder, loop_detected, prepare_headers
from .handler import handle_request, forward_unmatched, proxy_to_target

__all__ = [
    "Forwarder",
    "loop_detected",
    "prepare_headers",
    "handle_request",
    "forward_unmatched",
    "proxy_to_target",
]
