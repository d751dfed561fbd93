import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "path-based-router")

# JSON object mapping path patterns to target descriptors, e.g.
# {"/app1/*": "proxy:https://app1.example.com/*", "/": "https://example.com"}
ROUTES = os.environ.get("ROUTES", "{}")
# "true" for every route, or a list of route patterns (JSON array or comma separated)
IMAGE_CACHE = os.environ.get("IMAGE_CACHE", "")

PROXY_TIMEOUT = float(os.environ.get("PROXY_TIMEOUT", "300"))
LOOP_DETECTION_HEADER = os.environ.get("LOOP_DETECTION_HEADER", "X-Path-Router-Loop")
# Origin that receives requests no route matched; empty answers 404
FALLBACK_ORIGIN = os.environ.get("FALLBACK_ORIGIN", "").rstrip("/")

METRICS_PATH = os.environ.get("METRICS_PATH", "/metrics")

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
