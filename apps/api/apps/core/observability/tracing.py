"""
Tracing support (OpenTelemetry API).

Spans are no-ops until an OpenTelemetry SDK/exporter is configured by the
deployment; the API package alone is enough to instrument code.
"""
from contextlib import contextmanager
from typing import Any, Dict, Optional

from opentelemetry import trace
from opentelemetry.trace import SpanKind, Status, StatusCode

tracer = trace.get_tracer('clinical_coordinator')

_SPAN_KINDS = {
    'server': SpanKind.SERVER,
    'client': SpanKind.CLIENT,
    'internal': SpanKind.INTERNAL,
}


@contextmanager
def trace_span(
    name: str,
    kind: Optional[str] = None,
    attributes: Optional[Dict[str, Any]] = None
):
    """
    Context manager for creating trace spans.

    Usage:
        with trace_span('intake.transition', attributes={'intake_id': str(intake_id)}):
            ...
    """
    with tracer.start_as_current_span(name, kind=_SPAN_KINDS.get(kind, SpanKind.INTERNAL)) as span:
        for key, value in (attributes or {}).items():
            span.set_attribute(key, value)
        try:
            yield span
        except Exception as e:
            span.set_attribute('error.type', e.__class__.__name__)
            span.set_status(Status(StatusCode.ERROR))
            raise
