"""LLM client protocol and data types."""

from dataclasses import dataclass
from typing import Any, Protocol

from conduit.tools.base import ToolDefinition


@dataclass
class Message:
    """A message in the conversation."""

    role: str  # "system", "user", "assistant"
    content: str


@dataclass
class ToolCall:
    """A tool call requested by the LLM."""

    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class CompletionResponse:
    """Response from LLM completion."""

    content: str
    tool_calls: list[ToolCall] | None = None
    finish_reason: str = "stop"


class LLMClient(Protocol):
    """Protocol for LLM client implementations."""

    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        model: str | None = None,
    ) -> CompletionResponse:
        """Generate a completion from the LLM.

        Args:
            messages: Conversation history
            tools: Tools the model may call
            model: Model identifier override (defaults to the client's model)

        Returns:
            CompletionResponse with content and optional tool calls

        Raises:
            ProviderError: If the provider call fails
        """
        ...
