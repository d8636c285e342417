"""Tests for agent-to-agent delegation."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import MOUSE_MOVE, MockLLM, answer, tool_call

from conduit.agent.definition import AgentDefinition, AgentRegistry
from conduit.agent.delegation import DelegationContext, DelegationManager
from conduit.agent.dispatcher import ToolDispatcher
from conduit.agent.events import EventEmitter
from conduit.agent.loop import ReActLoop, TerminationReason
from conduit.agent.presets import ROOT_AGENT_ID, default_agents
from conduit.tools.delegation import DELEGATE_TOOL_ID, create_delegation_tool
from conduit.tools.registry import ToolRegistry


def _setup(llm, agents=None, max_depth=1):
    agents = agents or AgentRegistry(default_agents())
    registry = ToolRegistry([create_delegation_tool(agents.ids)])
    registry.register([MOUSE_MOVE])
    correlator = MagicMock()
    correlator.send = AsyncMock(return_value={"type": "success", "message": "Moved", "commandId": "c"})
    emitter = EventEmitter()
    dispatcher = ToolDispatcher(registry, correlator=correlator)
    manager = DelegationManager(
        agents=agents,
        llm=llm,
        registry=registry,
        dispatcher=dispatcher,
        emitter=emitter,
        root_agent_id=ROOT_AGENT_ID,
        max_depth=max_depth,
        max_iterations=5,
    )
    dispatcher.delegation = manager
    return agents, registry, dispatcher, manager, emitter


class TestDelegationContext:
    def test_depth_counts_hops_below_root(self):
        assert DelegationContext(chain=["root"]).depth == 0
        assert DelegationContext(chain=["root", "child"]).depth == 1

    def test_depth_limit(self):
        ctx = DelegationContext(chain=["root", "child"], max_depth=1)
        allowed, reason = ctx.can_delegate("other")
        assert not allowed
        assert "Maximum delegation depth (1)" in reason

    def test_cycle_detection(self):
        ctx = DelegationContext(chain=["root", "child"], max_depth=5)
        allowed, reason = ctx.can_delegate("child")
        assert not allowed
        assert "Cycle detected" in reason

    def test_child_context_extends_chain(self):
        ctx = DelegationContext(chain=["root"], max_depth=2)
        child = ctx.child_context("child")
        assert child.chain == ["root", "child"]
        assert child.max_depth == 2
        assert ctx.chain == ["root"]


@pytest.mark.asyncio
async def test_orchestrator_delegates_and_reports():
    llm = MockLLM(
        [
            tool_call(
                DELEGATE_TOOL_ID,
                {"agent_id": "desktop-automation-agent", "task": "Move the mouse to 1, 2"},
            ),
            tool_call("mouse_move", {"x": 1, "y": 2}),
            answer("Mouse moved to (1, 2)."),
            answer("The desktop agent moved the mouse to (1, 2)."),
        ]
    )
    agents, registry, dispatcher, _, emitter = _setup(llm)
    events = []
    emitter.add_listener(events.append)

    log = await ReActLoop(
        agent=agents.get(ROOT_AGENT_ID),
        task="Put the cursor at 1, 2",
        llm=llm,
        registry=registry,
        dispatcher=dispatcher,
        emitter=emitter,
    ).run()

    assert log.status == "success"
    assert log.final_response == "The desktop agent moved the mouse to (1, 2)."
    summary = log.steps[0].observation.result
    assert summary["delegatedAgentId"] == "desktop-automation-agent"
    assert summary["status"] == "success"
    assert summary["response"] == "Mouse moved to (1, 2)."
    assert summary["stepsExecuted"] == 2
    assert summary["toolCallsMade"] == 1

    # The nested loop starts from the task alone
    nested_messages = llm.calls[1]["messages"]
    assert nested_messages[-1].content == "Move the mouse to 1, 2"
    assert len(nested_messages) == 2

    types = [e.type for e in events]
    start = types.index("delegation_start")
    end = types.index("delegation_end")
    nested = events[start + 1 : end]
    assert nested and all(e.agent_id == "desktop-automation-agent" for e in nested)
    assert events[start].delegated_agent_id == "desktop-automation-agent"


@pytest.mark.asyncio
async def test_unknown_agent_is_rejected_without_nested_loop():
    llm = MockLLM([])
    agents, _, _, manager, emitter = _setup(llm)
    events = []
    emitter.add_listener(events.append)

    result = await manager.delegate(agents.get(ROOT_AGENT_ID), "ghost-agent", "do it")

    assert not result.success
    assert "Agent not found: ghost-agent" in result.error
    assert "web-research-agent" in result.error
    assert llm.call_count == 0
    assert events == []


@pytest.mark.asyncio
async def test_root_agent_cannot_be_a_target(desktop_agent):
    llm = MockLLM([])
    _, _, _, manager, _ = _setup(llm)

    result = await manager.delegate(desktop_agent, ROOT_AGENT_ID, "take over")

    assert not result.success
    assert ROOT_AGENT_ID in result.error
    assert llm.call_count == 0


@pytest.mark.asyncio
async def test_target_must_be_listed_in_source_delegates():
    agents = AgentRegistry(default_agents())
    agents.register(
        AgentDefinition(id="custom-agent", name="Custom", purpose="x", system_prompt="{tools}")
    )
    llm = MockLLM([])
    _, _, _, manager, _ = _setup(llm, agents=agents)

    result = await manager.delegate(agents.get(ROOT_AGENT_ID), "custom-agent", "hello")

    assert not result.success
    assert "may only delegate to" in result.error
    assert llm.call_count == 0


@pytest.mark.asyncio
async def test_depth_limit_rejects_nested_delegation(desktop_agent):
    llm = MockLLM([])
    _, _, _, manager, _ = _setup(llm)
    context = DelegationContext(chain=[ROOT_AGENT_ID, desktop_agent.id], max_depth=1)

    result = await manager.delegate(desktop_agent, "web-research-agent", "search", context)

    assert not result.success
    assert "Maximum delegation depth" in result.error
    assert llm.call_count == 0


@pytest.mark.asyncio
async def test_cycle_is_rejected(desktop_agent):
    llm = MockLLM([])
    _, _, _, manager, _ = _setup(llm, max_depth=3)
    context = DelegationContext(chain=["web-research-agent", desktop_agent.id], max_depth=3)

    result = await manager.delegate(desktop_agent, "web-research-agent", "search", context)

    assert not result.success
    assert "Cycle detected" in result.error


@pytest.mark.asyncio
async def test_delegated_loop_uses_capped_iterations_and_cannot_delegate():
    llm = MockLLM([tool_call("mouse_move", {"x": i, "y": i}, content=f"Step {i}") for i in range(5)])
    agents, _, _, manager, _ = _setup(llm)
    manager.max_iterations = 2

    result = await manager.delegate(
        agents.get(ROOT_AGENT_ID), "desktop-automation-agent", "keep moving"
    )

    assert llm.call_count == 2
    assert result.success
    assert result.result["stepsExecuted"] == 2
    assert all(t.id != DELEGATE_TOOL_ID for t in llm.calls[0]["tools"])


@pytest.mark.asyncio
async def test_failed_nested_loop_is_reported_as_failure():
    llm = MockLLM([RuntimeError("provider down")])
    agents, _, _, manager, _ = _setup(llm)

    result = await manager.delegate(
        agents.get(ROOT_AGENT_ID), "desktop-automation-agent", "move it"
    )

    assert not result.success
    assert result.result["status"] == "error"
    assert "provider down" in result.error


@pytest.mark.asyncio
async def test_orchestrator_recovers_from_rejected_delegation():
    llm = MockLLM(
        [
            tool_call(DELEGATE_TOOL_ID, {"agent_id": "ghost-agent", "task": "boo"}),
            answer("There is no such agent."),
        ]
    )
    agents, registry, dispatcher, _, emitter = _setup(llm)

    log = await ReActLoop(
        agent=agents.get(ROOT_AGENT_ID),
        task="ask the ghost",
        llm=llm,
        registry=registry,
        dispatcher=dispatcher,
        emitter=emitter,
    ).run()

    assert log.status == "success"
    assert log.termination_reason is TerminationReason.MODEL_CONCLUDED
    assert "Agent not found: ghost-agent" in log.steps[0].observation.error


@pytest.mark.asyncio
async def test_cancelled_delegation_still_emits_delegation_end():
    llm = MockLLM([tool_call("mouse_move", {"x": 1, "y": 2})])
    agents, _, dispatcher, manager, emitter = _setup(llm)
    dispatcher.correlator.send.side_effect = asyncio.CancelledError
    events = []
    emitter.add_listener(events.append)

    with pytest.raises(asyncio.CancelledError):
        await manager.delegate(agents.get(ROOT_AGENT_ID), "desktop-automation-agent", "move it")

    types = [e.type for e in events]
    assert types[0] == "delegation_start"
    assert types[-1] == "delegation_end"
    assert events[-1].final_response == "Execution interrupted"
