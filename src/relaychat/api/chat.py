"""Chat relay endpoint implementation."""

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from relaychat.infra.telemetry import get_current_trace_id

from .deps import CredentialDep, ModelCatalogConfigDep, RelayConfigDep, RelayServiceDep
from .models import ChatRequest, ErrorResponse, ModelListResponse
from .streaming import sse_stream

STREAMING_RESPONSE_MEDIA_TYPE = "text/event-stream"
STREAMING_RESPONSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}
TRACE_HEADER = "X-Relaychat-Trace"

router = APIRouter(prefix="/api", tags=["chat"])

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Malformed request body"},
    401: {"model": ErrorResponse, "description": "Missing credential"},
    500: {"model": ErrorResponse, "description": "Upstream or internal failure"},
}


@router.post("", responses=_ERROR_RESPONSES)
async def chat(
    chat_request: ChatRequest,
    credential: CredentialDep,
    relay: RelayServiceDep,
    relay_config: RelayConfigDep,
) -> StreamingResponse:
    """
    Relay a chat completion as a stream of Server-Sent Events.

    Each record is ``data: <json>``:
    - upstream completion chunks (``choices[0].delta.content``)
    - one usage record (``usage`` + ``time_info``) after the last chunk
    - ``{"error": ...}`` if the upstream stream breaks mid-flight
    - the terminal ``data: [DONE]``

    Failures before streaming starts are returned as ``{"error": ...}``
    with the upstream status code (or 400/401/500).
    """
    started_at = relay.clock()
    prepared = relay.prepare(chat_request.messages, chat_request.model)
    upstream = await relay.open(credential, prepared)

    headers = dict(STREAMING_RESPONSE_HEADERS)
    trace_id = get_current_trace_id()
    if trace_id:
        headers[TRACE_HEADER] = trace_id

    return StreamingResponse(
        sse_stream(
            relay.relay(upstream, started_at),
            request_timeout=relay_config.request_timeout,
            on_finish=upstream.aclose,
        ),
        media_type=STREAMING_RESPONSE_MEDIA_TYPE,
        headers=headers,
    )


@router.get("/models")
async def list_models(catalog: ModelCatalogConfigDep) -> ModelListResponse:
    """Models offered for selection, plus the default."""
    return ModelListResponse(
        default_model=catalog.default_model, models=catalog.available
    )
