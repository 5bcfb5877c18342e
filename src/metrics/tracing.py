"""OpenTelemetry helpers shared by the upstream adapters."""

from opentelemetry.trace import Span

from ride_logging import current_correlation_id


def bridge_correlation_id(span: Span) -> None:
    """Tag the span with the ride's correlation id so traces and logs line up."""
    correlation_id = current_correlation_id()
    if correlation_id:
        span.set_attribute("correlation_id", correlation_id)
