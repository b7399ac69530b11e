"""OpenTelemetry tracing for the relay.

With ``TracingConfig.enabled`` false nothing is installed and ``tracer``
hands out non-recording spans, so call sites never branch on it.  When
enabled, spans are batched to an OTLP HTTP collector and two
auto-instrumentations are attached:

- **FastAPI**: one server span per inbound request
- **httpx**: client spans for the ``openai`` upstream calls

Custom spans::

    from relaychat.infra.telemetry import SPAN_RELAY_STREAM, tracer

    with tracer.start_as_current_span(SPAN_RELAY_STREAM) as span:
        ...
"""

from __future__ import annotations

import base64
import logging

from opentelemetry import trace
from opentelemetry.trace import format_span_id, format_trace_id

from relaychat.configs.system import TracingConfig

logger = logging.getLogger(__name__)

tracer = trace.get_tracer("relaychat")

# ---------------------------------------------------------------------------
# Span names
# ---------------------------------------------------------------------------

SPAN_HISTORY_BUDGET = "history.budget"
SPAN_UPSTREAM_OPEN = "upstream.open"
SPAN_RELAY_STREAM = "relay.stream"

# ---------------------------------------------------------------------------
# Span attribute keys
# ---------------------------------------------------------------------------

ATTR_HISTORY_ORIGINAL_COUNT = "history.original_count"
ATTR_HISTORY_KEPT_COUNT = "history.kept_count"
ATTR_HISTORY_AVAILABLE_TOKENS = "history.available_tokens"

ATTR_UPSTREAM_MODEL = "upstream.model"
ATTR_UPSTREAM_STATUS = "upstream.status"

ATTR_RELAY_OUTCOME = "relay.outcome"
ATTR_RELAY_FRAME_COUNTS = "relay.frame_counts"


def _exporter_headers(settings: TracingConfig) -> dict[str, str]:
    """Basic auth for collectors that require it; none otherwise."""
    if not (settings.username or settings.password):
        return {}
    token = base64.b64encode(f"{settings.username}:{settings.password}".encode())
    return {"Authorization": f"Basic {token.decode()}"}


def _install_provider(settings: TracingConfig) -> None:
    from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
        OTLPSpanExporter,
    )
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor
    from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

    provider = TracerProvider(
        resource=Resource.create({"service.name": settings.service_name}),
        sampler=ParentBased(root=TraceIdRatioBased(settings.sample_rate)),
    )
    exporter = OTLPSpanExporter(
        endpoint=settings.endpoint, headers=_exporter_headers(settings)
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)


def _instrument(app: object | None, settings: TracingConfig) -> None:
    from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

    if app is not None:
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

        FastAPIInstrumentor.instrument_app(
            app, excluded_urls=",".join(settings.excluded_urls)
        )
    HTTPXClientInstrumentor().instrument()


def init_telemetry(app: object | None = None, settings: TracingConfig | None = None) -> bool:
    """Install tracing for *app* when *settings* enable it.

    Returns whether tracing was installed.  Enabled-but-unconfigured
    (no endpoint) is logged and treated as disabled.
    """
    if settings is None or not settings.enabled:
        logger.info("OpenTelemetry tracing disabled.")
        return False
    if not settings.endpoint:
        logger.warning("Tracing enabled but no endpoint configured; skipping setup.")
        return False

    _install_provider(settings)
    _instrument(app, settings)
    logger.info(
        "OpenTelemetry tracing initialised (service=%s, endpoint=%s).",
        settings.service_name,
        settings.endpoint,
    )
    return True


def current_span_ids() -> tuple[str, str] | None:
    """``(trace_id, span_id)`` of the active span as hex, or ``None``."""
    ctx = trace.get_current_span().get_span_context()
    if ctx is None or not ctx.is_valid:
        return None
    return format_trace_id(ctx.trace_id), format_span_id(ctx.span_id)


def get_current_trace_id() -> str | None:
    """Return the active trace ID as a 32-char hex string, or ``None``."""
    ids = current_span_ids()
    return ids[0] if ids else None
