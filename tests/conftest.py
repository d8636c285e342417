"""Pytest configuration and shared fixtures."""

import json
from typing import Any

import pytest

from conduit.agent.definition import AgentDefinition, ToolReference
from conduit.config.schema import ConduitConfig
from conduit.llm.client import CompletionResponse, Message, ToolCall
from conduit.tools.base import ToolDefinition, ToolParameter


class MockLLM:
    """LLM stub returning predefined responses in order."""

    def __init__(self, responses: list[CompletionResponse | Exception]):
        self.responses = responses
        self.call_count = 0
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        model: str | None = None,
    ) -> CompletionResponse:
        self.calls.append({"messages": list(messages), "tools": tools, "model": model})
        response = self.responses[self.call_count]
        self.call_count += 1
        if isinstance(response, Exception):
            raise response
        return response


class FakeConnection:
    """In-memory stand-in for the executor websocket."""

    def __init__(self, fail_send: bool = False):
        self.sent: list[dict[str, Any]] = []
        self.closed: tuple[int, str | None] | None = None
        self.fail_send = fail_send

    async def send_text(self, data: str) -> None:
        if self.fail_send:
            raise ConnectionError("socket closed")
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed = (code, reason)


def tool_call(name: str, arguments: dict[str, Any], content: str = "") -> CompletionResponse:
    return CompletionResponse(
        content=content,
        tool_calls=[ToolCall(id=f"call_{name}", name=name, arguments=arguments)],
        finish_reason="tool_calls",
    )


def answer(content: str) -> CompletionResponse:
    return CompletionResponse(content=content)


MOUSE_MOVE = ToolDefinition(
    id="mouse_move",
    name="Move Mouse",
    description="Move the mouse cursor to absolute screen coordinates",
    category="mouse",
    parameters=[
        ToolParameter(name="x", type="number", description="X coordinate", required=True),
        ToolParameter(name="y", type="number", description="Y coordinate", required=True),
        ToolParameter(name="duration", type="number", description="Seconds"),
    ],
)

MOUSE_CLICK = ToolDefinition(
    id="mouse_click",
    name="Click Mouse",
    description="Click a mouse button",
    category="mouse",
    parameters=[
        ToolParameter(
            name="button",
            type="string",
            description="Button",
            required=True,
            enum=["left", "right", "middle"],
        ),
        ToolParameter(name="double", type="boolean", description="Double click"),
    ],
)


@pytest.fixture
def default_config() -> ConduitConfig:
    """Provide a default configuration for tests."""
    return ConduitConfig()


@pytest.fixture
def desktop_agent() -> AgentDefinition:
    return AgentDefinition(
        id="desktop-automation-agent",
        name="Desktop Automation Agent",
        purpose="Move and click the mouse",
        system_prompt="You control the desktop.\n\nTools:\n{tools}\n\nPurpose: {purpose}",
        tools=[ToolReference(tool_id="mouse_move"), ToolReference(tool_id="mouse_click")],
        max_iterations=3,
    )
