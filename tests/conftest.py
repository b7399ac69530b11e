"""Shared fixtures: a scripted upstream provider."""

import asyncio
from typing import Any

import pytest

from relaychat.core.provider import CompletionProvider, UpstreamStream


def chunk(text: str) -> dict[str, Any]:
    """An OpenAI-style incremental completion chunk."""
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion.chunk",
        "model": "llama-3.3-70b",
        "choices": [{"index": 0, "delta": {"content": text}}],
    }


class ScriptedUpstream(UpstreamStream):
    """Yields the scripted chunks, then optionally raises."""

    def __init__(
        self,
        chunks: list[dict[str, Any]],
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.chunks = chunks
        self.error = error
        self.delay = delay
        self.close_calls = 0

    async def __aiter__(self):
        for item in self.chunks:
            if self.delay:
                await asyncio.sleep(self.delay)
            yield item
        if self.error is not None:
            raise self.error

    async def aclose(self) -> None:
        self.close_calls += 1


class ScriptedProvider(CompletionProvider):
    """Records every open() call and hands out a prepared upstream."""

    def __init__(
        self,
        upstream: ScriptedUpstream | None = None,
        rejection: Exception | None = None,
    ) -> None:
        self.upstream = upstream or ScriptedUpstream([])
        self.rejection = rejection
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def open(self, credential: str, params: dict[str, Any]) -> UpstreamStream:
        self.calls.append((credential, params))
        if self.rejection is not None:
            raise self.rejection
        return self.upstream


@pytest.fixture
def make_chunk():
    return chunk


@pytest.fixture
def scripted_upstream():
    return ScriptedUpstream


@pytest.fixture
def scripted_provider():
    return ScriptedProvider
