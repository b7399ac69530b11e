"""Relay-to-client wire frames.

Every record on the wire is one ``data: <payload>\\n\\n`` line.  Frames
are modelled as an explicit tagged union so both the relay (encoding)
and the client (decoding) dispatch on a closed set of variants:

* ``ContentDelta`` -- the upstream incremental-completion chunk, passed
  through re-serialized (``choices[0].delta.content`` carries the text).
* ``UsageRecord`` -- synthesized after the last delta:
  ``{"usage": {...}, "time_info": {...}}``.
* ``ErrorNotice`` -- ``{"error": message}``, sent instead of the usage
  record when the upstream stream fails mid-flight.
* ``Done`` -- the literal ``[DONE]``, always last.
"""

import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

FRAME_KIND_CONTENT = "content"
FRAME_KIND_USAGE = "usage"
FRAME_KIND_ERROR = "error"
FRAME_KIND_DONE = "done"

VALID_FRAME_KINDS = frozenset(
    {FRAME_KIND_CONTENT, FRAME_KIND_USAGE, FRAME_KIND_ERROR, FRAME_KIND_DONE}
)

SSE_DATA_PREFIX = "data: "
SSE_RECORD_SEPARATOR = "\n\n"
DONE_SENTINEL = "[DONE]"


class FrameDecodeError(ValueError):
    """A ``data:`` payload that is not a recognizable frame."""


class ContentDelta(BaseModel):
    """One upstream fragment of generated text."""

    kind: Literal["content"] = FRAME_KIND_CONTENT
    text: str = Field(description="Text fragment")
    chunk: dict[str, Any] | None = Field(
        default=None, description="Upstream chunk the fragment arrived in"
    )

    def payload(self) -> dict[str, Any]:
        if self.chunk is not None:
            return self.chunk
        return {"choices": [{"index": 0, "delta": {"content": self.text}}]}


class UsageRecord(BaseModel):
    """Token and timing summary, emitted once after the last delta."""

    kind: Literal["usage"] = FRAME_KIND_USAGE
    completion_tokens: int | None = Field(
        default=None, ge=0, description="None when the record carried no count"
    )
    elapsed_seconds: float = Field(gt=0)

    def payload(self) -> dict[str, Any]:
        usage = {}
        if self.completion_tokens is not None:
            usage = {
                "completion_tokens": self.completion_tokens,
                "total_tokens": self.completion_tokens,
            }
        return {
            "usage": usage,
            "time_info": {
                "completion_time": self.elapsed_seconds,
                "total_time": self.elapsed_seconds,
            },
        }


class ErrorNotice(BaseModel):
    """The upstream stream failed after streaming began."""

    kind: Literal["error"] = FRAME_KIND_ERROR
    message: str

    def payload(self) -> dict[str, Any]:
        return {"error": self.message}


class Done(BaseModel):
    """Terminal sentinel; closes every stream."""

    kind: Literal["done"] = FRAME_KIND_DONE


Frame = Annotated[
    ContentDelta | UsageRecord | ErrorNotice | Done,
    Field(discriminator="kind"),
]

DONE = Done()


def format_sse(frame: ContentDelta | UsageRecord | ErrorNotice | Done) -> str:
    """Render *frame* as one SSE record."""
    if isinstance(frame, Done):
        data = DONE_SENTINEL
    else:
        data = json.dumps(frame.payload(), ensure_ascii=False)
    return f"{SSE_DATA_PREFIX}{data}{SSE_RECORD_SEPARATOR}"


def extract_content(chunk: dict[str, Any]) -> str:
    """Return the text carried by an incremental or complete choice, or ``""``."""
    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    for key in ("delta", "message"):
        part = first.get(key)
        if isinstance(part, dict):
            content = part.get("content")
            if isinstance(content, str) and content:
                return content
    return ""


def parse_frame(data: str) -> ContentDelta | UsageRecord | ErrorNotice | Done:
    """Decode one ``data:`` payload (prefix already stripped).

    Raises
    ------
    FrameDecodeError
        If *data* is not JSON, not an object, or matches no frame shape.
    """
    data = data.strip()
    if data == DONE_SENTINEL:
        return DONE

    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        raise FrameDecodeError(f"Invalid JSON in frame: {e}") from e
    if not isinstance(payload, dict):
        raise FrameDecodeError(f"Frame is not an object: {data!r}")

    if "error" in payload:
        error = payload["error"]
        if isinstance(error, dict):
            error = error.get("message") or json.dumps(error)
        return ErrorNotice(message=str(error))

    content = extract_content(payload)
    if content:
        return ContentDelta(text=content, chunk=payload)

    usage = payload.get("usage")
    if isinstance(usage, dict):
        time_info = payload.get("time_info")
        if not isinstance(time_info, dict):
            time_info = {}
        raw_tokens = usage.get("completion_tokens")
        try:
            tokens = None if raw_tokens is None else max(int(raw_tokens), 0)
            elapsed = float(
                time_info.get("completion_time")
                or time_info.get("total_time")
                or 0.0
            )
        except (TypeError, ValueError) as e:
            raise FrameDecodeError(f"Malformed usage record: {data!r}") from e
        return UsageRecord.model_construct(
            completion_tokens=tokens, elapsed_seconds=elapsed
        )

    raise FrameDecodeError(f"Unrecognized frame: {data!r}")
