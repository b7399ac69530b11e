"""Upstream completion provider.

The relay treats the provider as an opaque capability: open a streaming
completion, iterate chunk dicts in order, close.  ``OpenAICompatibleProvider``
implements it for any OpenAI-compatible endpoint (Cerebras by default);
tests substitute their own ``CompletionProvider``.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Annotated, Any

import httpx
from fastapi import Depends, Request
from openai import (
    APIConnectionError,
    APIError,
    APIStatusError,
    AsyncOpenAI,
    AsyncStream,
)
from openai.types.chat import ChatCompletionChunk

from relaychat.configs.config import get_upstream_config
from relaychat.configs.system import UpstreamConfig

from .exceptions import MidStreamFailure, UpstreamRejection

logger = logging.getLogger(__name__)


class UpstreamStream(ABC):
    """An open upstream completion stream yielding chunk dicts."""

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[dict[str, Any]]: ...

    @abstractmethod
    async def aclose(self) -> None:
        """Release the underlying connection (idempotent)."""


class CompletionProvider(ABC):
    """Opens streaming completions on behalf of one caller credential."""

    @abstractmethod
    async def open(self, credential: str, params: dict[str, Any]) -> UpstreamStream:
        """Submit the request and return its fragment stream.

        Raises
        ------
        UpstreamRejection
            The provider refused the request before streaming began.
        """


class _OpenAIChunkStream(UpstreamStream):
    def __init__(
        self, stream: AsyncStream[ChatCompletionChunk], client: AsyncOpenAI, owns_client: bool
    ) -> None:
        self._stream = stream
        self._client = client
        self._owns_client = owns_client
        self._closed = False

    async def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        try:
            async for chunk in self._stream:
                yield chunk.model_dump(mode="json", exclude_unset=True)
        except APIError as e:
            raise MidStreamFailure(e.message or str(e)) from e

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._stream.close()
        if self._owns_client:
            await self._client.close()


class OpenAICompatibleProvider(CompletionProvider):
    """Provider backed by the ``openai`` SDK."""

    def __init__(
        self, config: UpstreamConfig, http_client: httpx.AsyncClient | None = None
    ) -> None:
        self.config = config
        self.http_client = http_client

    def _client(self, credential: str) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=credential,
            base_url=self.config.base_url,
            timeout=self.config.timeout.total_seconds(),
            max_retries=0,
            http_client=self.http_client,
        )

    async def open(self, credential: str, params: dict[str, Any]) -> UpstreamStream:
        client = self._client(credential)
        owns_client = self.http_client is None
        try:
            stream = await client.chat.completions.create(**params)
        except APIStatusError as e:
            logger.warning(
                "Upstream rejected request (status=%s): %s", e.status_code, e.message
            )
            if owns_client:
                await client.close()
            raise UpstreamRejection(e.message, status_code=e.status_code) from e
        except APIConnectionError as e:
            logger.warning("Upstream unreachable: %s", e)
            if owns_client:
                await client.close()
            raise UpstreamRejection(str(e) or "Upstream unreachable") from e
        return _OpenAIChunkStream(stream, client, owns_client)


def build_http_client(config: UpstreamConfig) -> httpx.AsyncClient:
    """Pooled client shared by every upstream request of the process."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(
            config.timeout.total_seconds(),
            connect=config.connect_timeout.total_seconds(),
        ),
        limits=httpx.Limits(max_connections=config.max_connections),
    )


def get_provider(
    request: Request,
    config: Annotated[UpstreamConfig, Depends(get_upstream_config)],
) -> CompletionProvider:
    """Request-scoped provider using the app's pooled HTTP client when present."""
    http_client = getattr(request.app.state, "http_client", None)
    return OpenAICompatibleProvider(config, http_client=http_client)
