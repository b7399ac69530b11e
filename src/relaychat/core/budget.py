"""Fit an unbounded conversation history into a token budget.

System messages are always kept whole.  The remaining turns are admitted
newest first until the next one would overflow, so whatever survives is
a contiguous run of the most recent messages.  When not even the newest
message fits, a truncated copy of it is sent instead so the model always
sees some recent context.
"""

import logging

from pydantic import BaseModel, Field

from relaychat.infra.tokens import estimate_tokens, truncate_to_tokens

from .messages import ChatMessage

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 8000
DEFAULT_RESERVED_FOR_RESPONSE = 2000
TRUNCATION_MARKER = "... [truncated due to token limit]"


class Budget(BaseModel):
    """Token allowance governing how much history is forwarded."""

    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS)
    reserved_for_response: int = Field(default=DEFAULT_RESERVED_FOR_RESPONSE)

    def history_allowance(self, system_tokens: int) -> int:
        """Tokens left for non-system history once *system_tokens* are spent."""
        return self.max_tokens - system_tokens - self.reserved_for_response


def fit_history(
    messages: list[ChatMessage],
    max_tokens: int = DEFAULT_MAX_TOKENS,
    reserved_for_response: int = DEFAULT_RESERVED_FOR_RESPONSE,
) -> list[ChatMessage]:
    """Return the subset of *messages* that fits the budget.

    Output is the system messages (original order) followed by the
    admitted non-system messages in chronological order.  A lone system
    message larger than the budget is returned untouched.
    """
    budget = Budget(max_tokens=max_tokens, reserved_for_response=reserved_for_response)
    system = [m for m in messages if m.is_system]
    others = [m for m in messages if not m.is_system]

    available = budget.history_allowance(
        sum(estimate_tokens(m.content) for m in system)
    )
    if available <= 0:
        logger.debug("System messages exhaust the budget; dropping all history.")
        return system

    admitted: list[ChatMessage] = []
    used = 0
    for message in reversed(others):
        cost = estimate_tokens(message.content)
        if used + cost <= available:
            admitted.append(message)
            used += cost
            continue
        if not admitted:
            admitted.append(_truncated(message, available))
        break

    admitted.reverse()
    return system + admitted


def _truncated(message: ChatMessage, available: int) -> ChatMessage:
    # The marker counts against the allowance.
    keep = available - estimate_tokens(TRUNCATION_MARKER)
    return message.model_copy(
        update={"content": truncate_to_tokens(message.content, keep) + TRUNCATION_MARKER}
    )
