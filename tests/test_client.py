"""Tests for the CLI's HTTP client and SSE reassembly."""

import json

import httpx
import pytest

from cli.client import (
    ChatAPIClient,
    ClientTransportError,
    RelayHTTPError,
    iter_sse_data,
)
from cli.config import CLIConfig
from relaychat.core.frames import ContentDelta, Done, UsageRecord
from relaychat.core.messages import ChatMessage


async def _chunks(*parts: str):
    for part in parts:
        yield part


async def _collect(agen) -> list:
    return [item async for item in agen]


class TestIterSSEData:
    @pytest.mark.asyncio
    async def test_records_split_across_chunks(self):
        data = await _collect(
            iter_sse_data(_chunks('data: {"a"', ": 1}\n", "\ndata: [DO", "NE]\n\n"))
        )
        assert data == ['{"a": 1}', "[DONE]"]

    @pytest.mark.asyncio
    async def test_many_records_in_one_chunk(self):
        data = await _collect(iter_sse_data(_chunks("data: 1\n\ndata: 2\n\ndata: 3\n\n")))
        assert data == ["1", "2", "3"]

    @pytest.mark.asyncio
    async def test_crlf_separators(self):
        data = await _collect(iter_sse_data(_chunks("data: x\r\n\r\ndata: y\r\n\r\n")))
        assert data == ["x", "y"]

    @pytest.mark.asyncio
    async def test_trailing_record_without_separator(self):
        data = await _collect(iter_sse_data(_chunks("data: x\n\ndata: [DONE]")))
        assert data == ["x", "[DONE]"]

    @pytest.mark.asyncio
    async def test_non_data_lines_ignored(self):
        data = await _collect(iter_sse_data(_chunks(": keepalive\n\nevent: ping\ndata: z\n\n")))
        assert data == ["z"]


def _client(handler) -> ChatAPIClient:
    return ChatAPIClient(CLIConfig(), transport=httpx.MockTransport(handler))


def _sse(*payloads) -> bytes:
    records = []
    for payload in payloads:
        data = payload if isinstance(payload, str) else json.dumps(payload)
        records.append(f"data: {data}\n\n")
    return "".join(records).encode()


MESSAGES = [ChatMessage(role="user", content="hi")]


class TestChatAPIClient:
    @pytest.mark.asyncio
    async def test_sends_credential_model_and_messages(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=_sse("[DONE]"))

        client = _client(handler)
        frames = await _collect(client.stream_frames(MESSAGES, "qwen-3-32b", "sk-1"))
        await client.close()

        assert seen["url"] == "http://localhost:8000/api"
        assert seen["auth"] == "Bearer sk-1"
        assert seen["body"] == {
            "messages": [{"role": "user", "content": "hi"}],
            "model": "qwen-3-32b",
        }
        assert [type(f) for f in frames] == [Done]

    @pytest.mark.asyncio
    async def test_malformed_line_is_skipped(self):
        body = _sse(
            {"choices": [{"delta": {"content": "Hel"}}]},
            "this is not json",
            {"choices": [{"delta": {"content": "lo"}}]},
            {"usage": {"completion_tokens": 2}, "time_info": {"total_time": 0.1}},
            "[DONE]",
        )
        client = _client(lambda request: httpx.Response(200, content=body))
        frames = await _collect(client.stream_frames(MESSAGES, "m", "k"))
        await client.close()

        assert [type(f) for f in frames] == [ContentDelta, ContentDelta, UsageRecord, Done]
        assert frames[0].text + frames[1].text == "Hello"

    @pytest.mark.asyncio
    async def test_non_200_raises_with_status_and_detail(self):
        client = _client(
            lambda request: httpx.Response(401, json={"error": "Missing key"})
        )
        with pytest.raises(RelayHTTPError) as exc_info:
            await _collect(client.stream_frames(MESSAGES, "m", ""))
        await client.close()

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Missing key"

    @pytest.mark.asyncio
    async def test_transport_failure_raises_client_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)
        with pytest.raises(ClientTransportError):
            await _collect(client.stream_frames(MESSAGES, "m", "k"))
        await client.close()

    @pytest.mark.asyncio
    async def test_list_models(self):
        catalog = {"default_model": "a", "models": [{"id": "a", "name": "A"}]}

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/models"
            return httpx.Response(200, json=catalog)

        client = _client(handler)
        assert await client.list_models() == catalog
        await client.close()
