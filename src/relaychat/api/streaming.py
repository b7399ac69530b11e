"""Reusable SSE streaming infrastructure.

Wraps an async generator of wire frames into a formatted SSE text stream
with timeout enforcement, an error boundary, guaranteed cleanup, and
unified metrics/tracing.  The relay generator stays free of SSE
formatting and exception handling; this module handles all of that.

Whatever happens mid-stream, the body ends with exactly one ``[DONE]``
record (unless the client itself went away).
"""

import asyncio
import json
import logging
import time
from collections import Counter as FrameCounter
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import timedelta

from relaychat.core.exceptions import MidStreamFailure
from relaychat.core.frames import (
    DONE,
    ContentDelta,
    Done,
    ErrorNotice,
    UsageRecord,
    format_sse,
)
from relaychat.core.metrics import (
    RELAY_FRAMES_TOTAL,
    RELAY_STREAM_DURATION_SECONDS,
    RELAY_STREAMS_ACTIVE,
    RELAY_STREAMS_TOTAL,
)
from relaychat.infra.telemetry import (
    ATTR_RELAY_FRAME_COUNTS,
    ATTR_RELAY_OUTCOME,
    SPAN_RELAY_STREAM,
    tracer,
)

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Request timed out."
UNKNOWN_ERROR_MESSAGE = "Unknown streaming error"


async def sse_stream(
    frames: AsyncGenerator[ContentDelta | UsageRecord | ErrorNotice | Done, None],
    *,
    request_timeout: timedelta | None = None,
    on_finish: Callable[[], Awaitable[None]] | None = None,
) -> AsyncGenerator[str, None]:
    """Format relay frames as SSE with timeout, error handling, and metrics.

    Parameters
    ----------
    frames:
        Async generator of wire frames (business logic).
    request_timeout:
        Optional wall-clock limit for the whole stream.
    on_finish:
        Async callback invoked in the ``finally`` block on every exit
        path (e.g. closing the upstream stream).

    Yields
    ------
    SSE-formatted strings (``data: ...\\n\\n``).
    """
    with tracer.start_as_current_span(SPAN_RELAY_STREAM) as span:
        outcome = "ok"
        frame_counts: FrameCounter[str] = FrameCounter()
        done_sent = False
        notice: ErrorNotice | None = None
        RELAY_STREAMS_ACTIVE.inc()
        start = time.monotonic()
        timeout = request_timeout.total_seconds() if request_timeout else None
        try:
            async with asyncio.timeout(timeout):
                async for frame in frames:
                    frame_counts[frame.kind] += 1
                    RELAY_FRAMES_TOTAL.labels(kind=frame.kind).inc()
                    if isinstance(frame, Done):
                        done_sent = True
                    yield format_sse(frame)

        except MidStreamFailure as e:
            outcome = "upstream_error"
            logger.warning("Upstream stream failed: %s", e.message)
            notice = ErrorNotice(message=e.message or UNKNOWN_ERROR_MESSAGE)
        except TimeoutError:
            outcome = "timeout"
            logger.warning("Relay stream timed out after %s.", request_timeout)
            notice = ErrorNotice(message=TIMEOUT_MESSAGE)
        except asyncio.CancelledError:
            outcome = "cancelled"
            raise
        except Exception as e:
            outcome = "error"
            span.record_exception(e)
            logger.warning("Stream processing error", exc_info=True)
            notice = ErrorNotice(message=str(e) or UNKNOWN_ERROR_MESSAGE)
        finally:
            span.set_attribute(ATTR_RELAY_OUTCOME, outcome)
            span.set_attribute(ATTR_RELAY_FRAME_COUNTS, json.dumps(frame_counts))
            RELAY_STREAMS_ACTIVE.dec()
            RELAY_STREAMS_TOTAL.labels(outcome=outcome).inc()
            RELAY_STREAM_DURATION_SECONDS.observe(time.monotonic() - start)
            if on_finish:
                await on_finish()

        if notice is not None:
            RELAY_FRAMES_TOTAL.labels(kind=notice.kind).inc()
            yield format_sse(notice)
        if not done_sent:
            RELAY_FRAMES_TOTAL.labels(kind=DONE.kind).inc()
            yield format_sse(DONE)
