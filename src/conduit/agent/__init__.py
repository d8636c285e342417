"""Agent layer: definitions, the ReAct loop, tool dispatch and delegation.

Usage::

    from conduit.agent import Engine
    from conduit.config.loader import load_config
    from conduit.llm import create_llm_client

    config = load_config()
    engine = Engine(config, create_llm_client(config))
    log = await engine.run("Move the mouse to 100, 200")
"""

from conduit.agent.definition import AgentDefinition, AgentRegistry, ToolReference
from conduit.agent.delegation import DelegationContext, DelegationManager
from conduit.agent.dispatcher import ToolDispatcher
from conduit.agent.engine import Engine, build_agent_registry, build_tool_registry
from conduit.agent.events import AgentEvent, EventEmitter
from conduit.agent.loop import ExecutionLog, ExecutionStep, LoopSettings, ReActLoop, TerminationReason

__all__ = [
    "AgentDefinition",
    "AgentEvent",
    "AgentRegistry",
    "DelegationContext",
    "DelegationManager",
    "Engine",
    "EventEmitter",
    "ExecutionLog",
    "ExecutionStep",
    "LoopSettings",
    "ReActLoop",
    "TerminationReason",
    "ToolDispatcher",
    "ToolReference",
    "build_agent_registry",
    "build_tool_registry",
]
