from typing import Any, Mapping, Optional, Sequence, Union

import httpx
from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator

from path_router.routes import router
from path_router.vars import METRICS_PATH, OTLP_ENDPOINT, OTLP_HEADERS, SERVICE_NAME


class FilteringSpanExporter(SpanExporter):
    """
    Wrapper exporter that filters out noisy ASGI body spans from streaming responses.
    Every relayed chunk of a proxied body would otherwise become its own span.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        filtered_spans = [
            span
            for span in spans
            if not (
                span.attributes
                and span.attributes.get("asgi.event.type") == "http.response.body"
            )
        ]
        if filtered_spans:
            return self.exporter.export(filtered_spans)
        return SpanExportResult.SUCCESS

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


trace.set_tracer_provider(
    TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
)
tracer_provider = trace.get_tracer_provider()
if OTLP_ENDPOINT:
    otlp_exporter = OTLPSpanExporter(
        endpoint=OTLP_ENDPOINT,
        headers=((OTLP_HEADERS).split(",") if OTLP_HEADERS else None),
    )
    tracer_provider.add_span_processor(
        BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
    )

app_info = Info("path_router_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME})


def create_app(
    routes: Union[str, Mapping[str, Any], None] = None,
    image_cache: Union[str, bool, list, None] = None,
    fallback_origin: Optional[str] = None,
    metrics_path: Optional[str] = METRICS_PATH,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """
    Build the router application.

    ``routes`` overrides the ROUTES environment variable, e.g.::

        app = create_app({
            "/app1/*": "proxy:https://app1.example.com/*",
            "/": "https://example.com",  # 302 redirect
        })

    The other arguments override IMAGE_CACHE, FALLBACK_ORIGIN and
    METRICS_PATH. ``http_client`` replaces the per-request outbound client.
    """
    application = FastAPI(openapi_url=None, docs_url=None, redoc_url=None)
    application.state.routes = routes
    application.state.image_cache = image_cache
    application.state.fallback_origin = fallback_origin
    application.state.http_client = http_client

    # Registered before the catch-all route so it is not proxied
    if metrics_path:
        Instrumentator().instrument(application).expose(
            application, endpoint=metrics_path, include_in_schema=False
        )

    FastAPIInstrumentor.instrument_app(
        application,
        excluded_urls=metrics_path or "",
        server_request_hook=None,
        client_request_hook=None,
    )

    application.include_router(router)
    return application


app = create_app()
