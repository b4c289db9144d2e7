"""OpenTelemetry wiring for the payments API."""

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor


def configure_tracing(app: FastAPI, service_name: str, endpoint: str, enabled: bool = True) -> bool:
    """Register an OTLP tracer provider and instrument `app`.

    Returns False without touching the global provider when tracing is off,
    which is how tests and local runs without a collector use it.
    """

    if not enabled:
        return False
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    trace.set_tracer_provider(provider)
    # Excluding the probe routes keeps scrape traffic out of the trace backend.
    FastAPIInstrumentor.instrument_app(app, excluded_urls="health,metrics")
    return True
