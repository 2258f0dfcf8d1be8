"""Conversation and option types shared by every generation backend."""

from typing import Literal

from pydantic import BaseModel, Field

Role = Literal["system", "user", "assistant"]


class ChatMessage(BaseModel):
    role: Role
    content: str


class GenerationOptions(BaseModel):
    """Per-call overrides. Unset fields fall back to the backend defaults."""

    model: str | None = None
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, gt=0)


class GenerationError(Exception):
    """Raised when a backend cannot produce text.

    Network failures, non-2xx responses and empty content all end up here.

    Attributes:
        provider: Backend name (mistral, ollama, ...)
        retryable: False when repeating the call cannot succeed (missing key, auth refused)
    """

    def __init__(self, message: str, *, provider: str | None = None, retryable: bool = True):
        self.provider = provider
        self.retryable = retryable
        super().__init__(message)


def user_message(content: str) -> ChatMessage:
    return ChatMessage(role="user", content=content)


def system_message(content: str) -> ChatMessage:
    return ChatMessage(role="system", content=content)
