"""Tests for tool dispatch and executor reply interpretation."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import MOUSE_MOVE

from conduit.agent.dispatcher import ToolDispatcher, interpret_reply
from conduit.errors import CommandTimeoutError, ExecutorDisconnectedError, ExecutorUnavailableError
from conduit.tools.base import LocalTool, ToolCallRequest, ToolCallResult, ToolDefinition, ToolParameter
from conduit.tools.delegation import DELEGATE_TOOL_ID, create_delegation_tool
from conduit.tools.registry import ToolRegistry


def _local_tool(fn) -> LocalTool:
    return LocalTool(
        definition=ToolDefinition(
            id="add",
            name="Add",
            description="Add two numbers",
            parameters=[
                ToolParameter(name="a", type="number", required=True),
                ToolParameter(name="b", type="number", required=True),
            ],
        ),
        fn=fn,
    )


def test_interpret_success_message():
    result = interpret_reply("mouse_move", {"type": "success", "message": "Moved", "commandId": "c"}, 3.0)
    assert result == ToolCallResult(tool_id="mouse_move", success=True, result="Moved", execution_time=3.0)


def test_interpret_error_reply():
    result = interpret_reply("mouse_move", {"type": "error", "error": "Out of bounds", "commandId": "c"}, 1.0)
    assert not result.success
    assert result.error == "Out of bounds"


def test_interpret_data_reply_keeps_payload():
    result = interpret_reply(
        "get_mouse_position", {"type": "mouse_position", "x": 5, "y": 6, "commandId": "c"}, 1.0
    )
    assert result.success
    assert result.result == {"type": "mouse_position", "x": 5, "y": 6}


def test_interpret_explicit_result_field():
    result = interpret_reply("run", {"type": "result", "result": [1, 2], "commandId": "c"}, 1.0)
    assert result.result == [1, 2]


@pytest.mark.asyncio
async def test_local_tool_receives_only_declared_arguments(desktop_agent):
    calls = []

    async def add(a, b):
        calls.append((a, b))
        return a + b

    dispatcher = ToolDispatcher(ToolRegistry([_local_tool(add)]))

    result = await dispatcher.dispatch(
        ToolCallRequest(tool_id="add", arguments={"a": 1, "b": 2, "extra": True}), desktop_agent
    )

    assert result.success
    assert result.result == 3
    assert calls == [(1, 2)]


@pytest.mark.asyncio
async def test_local_tool_exception_becomes_failed_result(desktop_agent):
    async def boom(a, b):
        raise RuntimeError("overflow")

    dispatcher = ToolDispatcher(ToolRegistry([_local_tool(boom)]))

    result = await dispatcher.dispatch(ToolCallRequest(tool_id="add", arguments={"a": 1, "b": 2}), desktop_agent)

    assert not result.success
    assert result.error == "overflow"


@pytest.mark.asyncio
async def test_remote_tool_sends_command_with_tool_id_as_type(desktop_agent):
    registry = ToolRegistry()
    registry.register([MOUSE_MOVE])
    correlator = MagicMock()
    correlator.send = AsyncMock(return_value={"type": "success", "message": "Moved", "commandId": "c"})
    dispatcher = ToolDispatcher(registry, correlator=correlator)

    result = await dispatcher.dispatch(
        ToolCallRequest(tool_id="mouse_move", arguments={"x": 12, "y": 7, "type": "spoof"}), desktop_agent
    )

    correlator.send.assert_awaited_once_with({"x": 12, "y": 7, "type": "mouse_move"})
    assert result.success
    assert result.result == "Moved"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [CommandTimeoutError("cmd_1_1", 30), ExecutorDisconnectedError("Client disconnected")],
)
async def test_remote_failures_become_failed_results(desktop_agent, error):
    registry = ToolRegistry()
    registry.register([MOUSE_MOVE])
    correlator = MagicMock()
    correlator.send = AsyncMock(side_effect=error)
    dispatcher = ToolDispatcher(registry, correlator=correlator)

    result = await dispatcher.dispatch(ToolCallRequest(tool_id="mouse_move", arguments={"x": 1, "y": 1}), desktop_agent)

    assert not result.success
    assert result.error == str(error)


@pytest.mark.asyncio
async def test_unavailable_executor_propagates(desktop_agent):
    registry = ToolRegistry()
    registry.register([MOUSE_MOVE])
    correlator = MagicMock()
    correlator.send = AsyncMock(side_effect=ExecutorUnavailableError("No client connected"))
    dispatcher = ToolDispatcher(registry, correlator=correlator)

    with pytest.raises(ExecutorUnavailableError):
        await dispatcher.dispatch(ToolCallRequest(tool_id="mouse_move", arguments={"x": 1, "y": 1}), desktop_agent)


@pytest.mark.asyncio
async def test_delegation_routes_to_manager(desktop_agent):
    registry = ToolRegistry([create_delegation_tool(["web-research-agent"])])
    delegation = MagicMock()
    expected = ToolCallResult(tool_id=DELEGATE_TOOL_ID, success=True, result={"response": "ok"})
    delegation.delegate = AsyncMock(return_value=expected)
    dispatcher = ToolDispatcher(registry, delegation=delegation)

    result = await dispatcher.dispatch(
        ToolCallRequest(tool_id=DELEGATE_TOOL_ID, arguments={"agent_id": "web-research-agent", "task": "look"}),
        desktop_agent,
    )

    assert result is expected
    delegation.delegate.assert_awaited_once_with(desktop_agent, "web-research-agent", "look", None)


@pytest.mark.asyncio
async def test_delegation_without_manager_fails_softly(desktop_agent):
    registry = ToolRegistry([create_delegation_tool([])])
    dispatcher = ToolDispatcher(registry)

    result = await dispatcher.dispatch(
        ToolCallRequest(tool_id=DELEGATE_TOOL_ID, arguments={"agent_id": "x", "task": "y"}), desktop_agent
    )

    assert not result.success
    assert result.error == "Delegation is not available"


@pytest.mark.asyncio
async def test_concurrent_remote_calls_keep_their_own_results(desktop_agent):
    registry = ToolRegistry()
    registry.register([MOUSE_MOVE])

    async def send(command):
        await asyncio.sleep(0.01 if command["x"] == 1 else 0)
        return {"type": "success", "message": f"at {command['x']}", "commandId": "c"}

    correlator = MagicMock()
    correlator.send = send
    dispatcher = ToolDispatcher(registry, correlator=correlator)

    slow, fast = await asyncio.gather(
        dispatcher.dispatch(ToolCallRequest(tool_id="mouse_move", arguments={"x": 1, "y": 0}), desktop_agent),
        dispatcher.dispatch(ToolCallRequest(tool_id="mouse_move", arguments={"x": 2, "y": 0}), desktop_agent),
    )

    assert slow.result == "at 1"
    assert fast.result == "at 2"
