"""Client for OpenAI-compatible inference servers."""

import json
import logging
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from conduit.errors import ProviderError
from conduit.llm.client import CompletionResponse, Message, ToolCall
from conduit.tools.base import ToolDefinition

logger = logging.getLogger(__name__)


class OpenAICompatibleClient:
    """LLM client for any server exposing ``/v1/chat/completions``."""

    def __init__(
        self,
        model: str,
        base_url: str,
        api_key: str | None = None,
        timeout: int = 120,
        temperature: float = 0.7,
    ) -> None:
        """Initialise the client.

        Args:
            model: Default model name served by the backend.
            base_url: OpenAI-compatible endpoint (must include ``/v1``).
            api_key: API key (many backends ignore this but the SDK requires one).
            timeout: Request timeout in seconds.
            temperature: Sampling temperature.
        """
        self.model = model
        self.temperature = temperature
        self.client = AsyncOpenAI(base_url=base_url, api_key=api_key or "none", timeout=timeout)

    def _parse_tool_calls(self, tool_calls: Any) -> list[ToolCall]:
        """Parse tool calls from an OpenAI-compatible response."""
        if not tool_calls:
            return []

        parsed: list[ToolCall] = []
        for tc in tool_calls:
            try:
                args = json.loads(tc.function.arguments or "{}")
            except json.JSONDecodeError:
                logger.warning("Unparseable arguments for tool call %s", tc.function.name)
                args = {}
            parsed.append(
                ToolCall(
                    id=tc.id,
                    name=tc.function.name,
                    arguments=args if isinstance(args, dict) else {},
                )
            )
        return parsed

    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        model: str | None = None,
    ) -> CompletionResponse:
        """Generate a completion.

        Args:
            messages: Conversation history.
            tools: Tools the model may call.
            model: Model override.

        Returns:
            CompletionResponse with content and optional tool calls.
        """
        params: dict[str, Any] = {
            "model": model or self.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": self.temperature,
        }

        if tools:
            params["tools"] = [t.to_openai_format() for t in tools]
            params["tool_choice"] = "auto"

        try:
            response = await self.client.chat.completions.create(**params)
        except OpenAIError as e:
            raise ProviderError(f"LLM call failed: {e}") from e

        choice = response.choices[0]
        message = choice.message

        tool_calls = self._parse_tool_calls(message.tool_calls)

        return CompletionResponse(
            content=message.content or "",
            tool_calls=tool_calls if tool_calls else None,
            finish_reason=choice.finish_reason or "stop",
        )
