from __future__ import annotations

from contextlib import asynccontextmanager

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Status, StatusCode

tracer = trace.get_tracer("agent_brain")
_exporting = False


def configure_tracing(endpoint: str | None, service_name: str = "agent-brain") -> bool:
    """Install an OTLP/HTTP exporter once; returns whether spans are exported."""
    global _exporting
    if endpoint and not _exporting:
        provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, timeout=5)))
        trace.set_tracer_provider(provider)
        _exporting = True
    return _exporting


@asynccontextmanager
async def async_span(name: str, tracer_obj=None, **attrs):
    """Async wrapper around ``start_as_current_span``.

    A failing body marks the span as errored and tags it with the error's
    ``kind``, or its class name, before re-raising.
    """
    with (tracer_obj or tracer).start_as_current_span(name, **attrs) as span:
        try:
            yield span
        except Exception as exc:
            span.set_attribute("error.kind", getattr(exc, "kind", type(exc).__name__))
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            raise
