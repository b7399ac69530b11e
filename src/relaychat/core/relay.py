"""Relay orchestration: budget the history, open upstream, reframe fragments.

One ``RelayService`` call chain serves exactly one client request and
holds no state across requests.  The frame generator stays free of SSE
formatting and error handling; ``relaychat.api.streaming`` owns both.
"""

import logging
import time
from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass
from typing import Annotated, Any

from fastapi import Depends

from relaychat.configs.config import (
    get_budget_config,
    get_model_catalog_config,
    get_relay_config,
)
from relaychat.configs.system import BudgetConfig, ModelCatalogConfig, RelayConfig
from relaychat.infra.telemetry import (
    ATTR_HISTORY_AVAILABLE_TOKENS,
    ATTR_HISTORY_KEPT_COUNT,
    ATTR_HISTORY_ORIGINAL_COUNT,
    ATTR_UPSTREAM_MODEL,
    ATTR_UPSTREAM_STATUS,
    SPAN_HISTORY_BUDGET,
    SPAN_UPSTREAM_OPEN,
    tracer,
)
from relaychat.infra.tokens import (
    count_words,
    estimate_tokens,
    safe_elapsed,
    tokens_per_second,
)

from .budget import Budget, fit_history
from .catalog import ModelCatalog
from .exceptions import UpstreamRejection
from .frames import DONE, ContentDelta, Done, UsageRecord, extract_content
from .messages import ChatMessage, ensure_system_message
from .metrics import (
    HISTORY_MESSAGES_DROPPED_TOTAL,
    HISTORY_MESSAGES_TRUNCATED_TOTAL,
    RELAY_COMPLETION_TOKENS,
    UPSTREAM_REJECTIONS_TOTAL,
)
from .provider import CompletionProvider, UpstreamStream, get_provider

logger = logging.getLogger(__name__)


@dataclass
class PreparedRequest:
    """A request ready to be sent upstream."""

    messages: list[ChatMessage]
    params: dict[str, Any]
    original_count: int

    @property
    def model(self) -> str:
        return self.params["model"]


class RelayService:
    """Per-request relay between one client and the upstream provider."""

    def __init__(
        self,
        provider: CompletionProvider,
        catalog: ModelCatalog,
        budget: Budget,
        config: RelayConfig,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.provider = provider
        self.catalog = catalog
        self.budget = budget
        self.config = config
        self.clock = clock

    def prepare(self, messages: list[ChatMessage], model: str | None) -> PreparedRequest:
        """Inject a system message, fit the budget and resolve the model."""
        messages = ensure_system_message(messages, self.config.default_system_prompt)
        with tracer.start_as_current_span(SPAN_HISTORY_BUDGET) as span:
            fitted = fit_history(
                messages,
                max_tokens=self.budget.max_tokens,
                reserved_for_response=self.budget.reserved_for_response,
            )
            span.set_attribute(ATTR_HISTORY_ORIGINAL_COUNT, len(messages))
            span.set_attribute(ATTR_HISTORY_KEPT_COUNT, len(fitted))
            span.set_attribute(
                ATTR_HISTORY_AVAILABLE_TOKENS,
                self.budget.history_allowance(
                    sum(estimate_tokens(m.content) for m in messages if m.is_system)
                ),
            )

        dropped = len(messages) - len(fitted)
        if dropped:
            HISTORY_MESSAGES_DROPPED_TOTAL.inc(dropped)
        if fitted and not any(fitted[-1] is m for m in messages):
            HISTORY_MESSAGES_TRUNCATED_TOTAL.inc()
        logger.info("Original messages: %d, Truncated: %d", len(messages), len(fitted))

        params = self.catalog.completion_params(model, fitted)
        logger.info(
            "Using model %s with params %s",
            params["model"],
            {k: v for k, v in params.items() if k != "messages"},
        )
        return PreparedRequest(
            messages=fitted, params=params, original_count=len(messages)
        )

    async def open(self, credential: str, prepared: PreparedRequest) -> UpstreamStream:
        """Open the upstream stream; rejections surface before any bytes are sent."""
        with tracer.start_as_current_span(SPAN_UPSTREAM_OPEN) as span:
            span.set_attribute(ATTR_UPSTREAM_MODEL, prepared.model)
            try:
                return await self.provider.open(credential, prepared.params)
            except UpstreamRejection as e:
                span.set_attribute(ATTR_UPSTREAM_STATUS, e.status_code)
                UPSTREAM_REJECTIONS_TOTAL.labels(status=str(e.status_code)).inc()
                raise

    async def relay(
        self, upstream: UpstreamStream, started_at: float
    ) -> AsyncGenerator[ContentDelta | UsageRecord | Done, None]:
        """Republish upstream fragments, then the usage record and ``Done``.

        Each non-empty fragment becomes exactly one ``ContentDelta``;
        nothing is buffered.
        """
        completion_tokens = 0
        async for chunk in upstream:
            text = extract_content(chunk)
            if not text:
                continue
            completion_tokens += count_words(text)
            yield ContentDelta(text=text, chunk=chunk)

        elapsed = safe_elapsed(self.clock() - started_at)
        RELAY_COMPLETION_TOKENS.observe(completion_tokens)
        logger.info(
            "%d tokens in %r s (%r TPS)",
            completion_tokens,
            elapsed,
            tokens_per_second(completion_tokens, elapsed),
        )
        yield UsageRecord(completion_tokens=completion_tokens, elapsed_seconds=elapsed)
        yield DONE


def get_relay_service(
    provider: Annotated[CompletionProvider, Depends(get_provider)],
    catalog_config: Annotated[ModelCatalogConfig, Depends(get_model_catalog_config)],
    budget_config: Annotated[BudgetConfig, Depends(get_budget_config)],
    relay_config: Annotated[RelayConfig, Depends(get_relay_config)],
) -> RelayService:
    return RelayService(
        provider=provider,
        catalog=ModelCatalog(catalog_config),
        budget=Budget(
            max_tokens=budget_config.max_tokens,
            reserved_for_response=budget_config.reserved_for_response,
        ),
        config=relay_config,
    )
