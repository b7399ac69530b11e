"""Conversation message model shared by the relay and its clients."""

from typing import Literal

from pydantic import BaseModel, Field

ROLE_SYSTEM = "system"
ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"

Role = Literal["system", "user", "assistant"]


class ChatMessage(BaseModel):
    """A single role-tagged message; list order is conversation order."""

    role: Role = Field(description="Message author role")
    content: str = Field(default="", description="Message text")

    @property
    def is_system(self) -> bool:
        return self.role == ROLE_SYSTEM


def ensure_system_message(
    messages: list[ChatMessage], system_prompt: str
) -> list[ChatMessage]:
    """Prepend a system message built from *system_prompt* when none exists."""
    if any(m.is_system for m in messages):
        return list(messages)
    return [ChatMessage(role=ROLE_SYSTEM, content=system_prompt), *messages]
