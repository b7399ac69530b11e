"""Prometheus metrics for the relay.

Custom business metrics that complement the auto-instrumented HTTP
metrics provided by ``prometheus-fastapi-instrumentator``.

All metrics use the ``relaychat_`` prefix.
"""

import logging

from fastapi import FastAPI
from prometheus_client import Counter, Gauge, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

from relaychat.configs.system import MetricsConfig, TracingConfig

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Relay stream metrics
# ---------------------------------------------------------------------------

RELAY_STREAMS_ACTIVE = Gauge(
    "relaychat_relay_streams_active",
    "Number of relayed streams currently in progress",
)

RELAY_STREAMS_TOTAL = Counter(
    "relaychat_relay_streams_total",
    "Total relayed streams, by outcome",
    ["outcome"],  # "ok" | "upstream_error" | "timeout" | "cancelled" | "error"
)

RELAY_STREAM_DURATION_SECONDS = Histogram(
    "relaychat_relay_stream_duration_seconds",
    "Wall-clock duration of a relayed stream",
    buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60, 120, 300),
)

RELAY_FRAMES_TOTAL = Counter(
    "relaychat_relay_frames_total",
    "Total frames written to clients, by frame kind",
    ["kind"],  # content | usage | error | done
)

RELAY_COMPLETION_TOKENS = Histogram(
    "relaychat_relay_completion_tokens",
    "Completion tokens counted per relayed stream",
    buckets=(0, 10, 50, 100, 250, 500, 1000, 2500, 5000, 10000),
)

# ---------------------------------------------------------------------------
# Upstream / history metrics
# ---------------------------------------------------------------------------

UPSTREAM_REJECTIONS_TOTAL = Counter(
    "relaychat_upstream_rejections_total",
    "Requests refused by the provider before streaming, by status",
    ["status"],
)

HISTORY_MESSAGES_DROPPED_TOTAL = Counter(
    "relaychat_history_messages_dropped_total",
    "Conversation messages dropped to fit the token budget",
)

HISTORY_MESSAGES_TRUNCATED_TOTAL = Counter(
    "relaychat_history_messages_truncated_total",
    "Messages forwarded as a truncated copy",
)


def instrument_app(app: FastAPI, config: MetricsConfig, tracing: TracingConfig) -> None:
    """Attach HTTP instrumentation and the exposition endpoint to *app*."""
    if not config.enabled:
        logger.info("Prometheus metrics disabled")
        return
    Instrumentator(
        should_instrument_requests_inprogress=True,
        excluded_handlers=tracing.excluded_urls,
    ).instrument(app).expose(app, endpoint=config.endpoint)
    logger.info("Prometheus metrics initialised")
