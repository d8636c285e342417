"""Cloudflare Workers AI client over the REST API."""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

import httpx

from conduit.errors import ProviderError
from conduit.llm.client import CompletionResponse, Message, ToolCall
from conduit.tools.base import ToolDefinition

logger = logging.getLogger(__name__)


class WorkersAIClient:
    """LLM client for Workers AI text-generation models.

    Workers AI takes tool schemas in the flat ``{name, description,
    parameters}`` form and answers with ``result.response`` and an optional
    ``result.tool_calls`` list of ``{name, arguments}`` objects.
    """

    def __init__(
        self,
        account_id: str,
        api_token: str,
        model: str,
        base_url: str = "https://api.cloudflare.com/client/v4",
        timeout: int = 120,
        temperature: float = 0.7,
    ):
        """
        Initialize Workers AI client.

        Args:
            account_id: Cloudflare account id
            api_token: API token with Workers AI permission
            model: Default model id (e.g. "@cf/meta/llama-3.3-70b-instruct-fp8-fast")
            base_url: Cloudflare API base URL
            timeout: Request timeout in seconds
            temperature: Sampling temperature
        """
        self.account_id = account_id
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_token}"},
        )

    def _url(self, model: str) -> str:
        return f"{self.base_url}/accounts/{self.account_id}/ai/run/{model}"

    @staticmethod
    def _parse_tool_calls(raw_calls: Any) -> list[ToolCall]:
        parsed = []
        for raw in raw_calls or []:
            if not isinstance(raw, dict):
                continue
            name = raw.get("name") or raw.get("id")
            if not name:
                continue
            args = raw.get("arguments", raw.get("parameters")) or {}
            if isinstance(args, str):
                try:
                    args = json.loads(args)
                except json.JSONDecodeError:
                    logger.warning("Unparseable arguments for tool call %s", name)
                    args = {}
            parsed.append(
                ToolCall(
                    id=raw.get("id") or f"call_{uuid.uuid4().hex[:8]}",
                    name=name,
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
        """
        Run a Workers AI model.

        Args:
            messages: Conversation history
            tools: Tools the model may call
            model: Model override

        Returns:
            CompletionResponse with content and optional tool calls
        """
        payload: dict[str, Any] = {
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": self.temperature,
            "stream": False,
        }
        if tools:
            payload["tools"] = [t.to_function_schema() for t in tools]

        try:
            response = await self._client.post(self._url(model or self.model), json=payload)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderError(f"LLM call failed: {e}") from e

        if not data.get("success", True):
            errors = data.get("errors") or []
            message = "; ".join(str(err.get("message", err)) for err in errors) or "unknown error"
            raise ProviderError(f"LLM call failed: {message}")

        result = data.get("result") or {}
        content = result.get("response") or result.get("content") or ""
        tool_calls = self._parse_tool_calls(result.get("tool_calls"))

        return CompletionResponse(
            content=content if isinstance(content, str) else json.dumps(content),
            tool_calls=tool_calls if tool_calls else None,
            finish_reason="tool_calls" if tool_calls else "stop",
        )

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
