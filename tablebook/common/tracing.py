"""OpenTelemetry wiring for the booking API.

Spans are always created through the global tracer; until `setup_tracing`
registers an exporting provider they are no-ops.
"""

from contextlib import contextmanager

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

UNTRACED_ROUTES = "health,metrics"


def setup_tracing(service_name: str, endpoint: str) -> None:
    """Register an OTLP/HTTP exporting tracer provider; empty endpoint keeps tracing off."""

    if not endpoint:
        return
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    trace.set_tracer_provider(provider)


def instrument_app(app: FastAPI) -> None:
    FastAPIInstrumentor.instrument_app(app, excluded_urls=UNTRACED_ROUTES)


@contextmanager
def booking_span(name: str, **attributes):
    """Child span around one step of a booking flow.

    Only identifiers go into attributes; customer emails and names stay out.
    """

    tracer = trace.get_tracer("tablebook")
    with tracer.start_as_current_span(name) as span:
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(f"booking.{key}", value)
        yield span
