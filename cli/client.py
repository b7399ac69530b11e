"""API client for the relay with SSE stream parsing."""

import json
import logging
from collections.abc import AsyncGenerator, AsyncIterator

import httpx

from relaychat.core.frames import (
    SSE_RECORD_SEPARATOR,
    ContentDelta,
    Done,
    ErrorNotice,
    FrameDecodeError,
    UsageRecord,
    parse_frame,
)
from relaychat.core.messages import ChatMessage

from .config import CLIConfig

logger = logging.getLogger(__name__)

TRACE_HEADER = "X-Relaychat-Trace"
_DATA_FIELD = "data:"


class RelayHTTPError(Exception):
    """The relay answered with a non-200 status before streaming."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(f"HTTP {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class ClientTransportError(Exception):
    """The connection to the relay failed or broke while reading."""


async def iter_sse_data(chunks: AsyncIterator[str]) -> AsyncGenerator[str, None]:
    """Reassemble ``data:`` payloads from arbitrarily split text chunks.

    SSE format: ``data: {...}\\n\\n`` (each record ends with a blank line).
    A trailing record without its blank line is still delivered when the
    stream ends.
    """
    buffer = ""
    async for chunk in chunks:
        buffer += chunk.replace("\r\n", "\n")
        while SSE_RECORD_SEPARATOR in buffer:
            record, buffer = buffer.split(SSE_RECORD_SEPARATOR, 1)
            for data in _record_data(record):
                yield data
    for data in _record_data(buffer):
        yield data


def _record_data(record: str) -> list[str]:
    lines = []
    for line in record.split("\n"):
        line = line.strip()
        if line.startswith(_DATA_FIELD):
            lines.append(line[len(_DATA_FIELD) :].strip())
    return lines


def _error_detail(body: bytes) -> str:
    text = body.decode("utf-8", errors="replace")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return text
    if isinstance(payload, dict) and "error" in payload:
        return str(payload["error"])
    return text


class ChatAPIClient:
    """Client for the relay's chat and model endpoints."""

    def __init__(
        self, config: CLIConfig, transport: httpx.AsyncBaseTransport | None = None
    ):
        """Initialize the API client."""
        self.config = config
        self.client = httpx.AsyncClient(timeout=config.timeout, transport=transport)

    async def stream_frames(
        self, messages: list[ChatMessage], model: str, credential: str
    ) -> AsyncGenerator[ContentDelta | UsageRecord | ErrorNotice | Done, None]:
        """Send the conversation and stream decoded frames.

        Malformed frames are logged and skipped.

        Raises
        ------
        RelayHTTPError
            The relay refused the request (status and ``error`` detail).
        ClientTransportError
            Connecting to or reading from the relay failed.
        """
        url = self.config.chat_url
        payload = {"messages": [m.model_dump() for m in messages], "model": model}
        headers = {
            "Authorization": f"Bearer {credential}",
            "Accept": "text/event-stream",
        }

        logger.debug(f"Making request to {url} with {len(messages)} messages")

        try:
            async with self.client.stream(
                "POST", url, json=payload, headers=headers
            ) as response:
                logger.debug(f"Response status: {response.status_code}")
                trace_id = response.headers.get(TRACE_HEADER)
                if trace_id:
                    logger.debug(f"{TRACE_HEADER}: {trace_id}")

                if response.status_code != 200:
                    body = await response.aread()
                    raise RelayHTTPError(response.status_code, _error_detail(body))

                async for data in iter_sse_data(response.aiter_text()):
                    try:
                        yield parse_frame(data)
                    except FrameDecodeError as e:
                        logger.warning(f"Failed to parse SSE data: {data}, error: {e}")

        except httpx.TransportError as e:
            raise ClientTransportError(str(e) or type(e).__name__) from e

    async def list_models(self) -> dict:
        """Fetch the relay's model catalog."""
        try:
            response = await self.client.get(self.config.models_url)
        except httpx.TransportError as e:
            raise ClientTransportError(str(e) or type(e).__name__) from e
        if response.status_code != 200:
            raise RelayHTTPError(response.status_code, _error_detail(response.content))
        return response.json()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
