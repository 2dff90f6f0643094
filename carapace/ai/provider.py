"""Completion backend interface shared by every AI provider."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Protocol, runtime_checkable

Role = Literal["system", "user", "assistant"]


class ProviderError(RuntimeError):
    """Completion request failed after retries or returned an error status."""


@dataclass(frozen=True, slots=True)
class AIMessage:
    role: Role
    content: str


@dataclass(frozen=True, slots=True)
class CompletionRequest:
    messages: list[AIMessage] = field(default_factory=list)
    max_tokens: int = 8192
    system: str | None = None
    model: str | None = None

    @property
    def user_text(self) -> str:
        return "\n".join(message.content for message in self.messages if message.role == "user")


@dataclass(frozen=True, slots=True)
class CompletionResponse:
    text: str


@runtime_checkable
class AIProvider(Protocol):
    name: str

    async def complete(self, request: CompletionRequest) -> CompletionResponse: ...
