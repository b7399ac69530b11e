"""Pydantic models for the relay API."""

from pydantic import BaseModel, Field

from relaychat.configs.system import ModelInfo
from relaychat.core.messages import ChatMessage


class ChatRequest(BaseModel):
    """Request body of ``POST /api``."""

    messages: list[ChatMessage] = Field(
        description="Conversation so far, oldest first"
    )
    model: str | None = Field(
        default=None, description="Model identifier (default model when omitted)"
    )


class ErrorResponse(BaseModel):
    """Non-streaming error body."""

    error: str = Field(description="Human-readable failure description")


class ModelListResponse(BaseModel):
    """Models a client may offer for selection."""

    default_model: str
    models: list[ModelInfo]
