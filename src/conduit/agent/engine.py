"""Engine builder: wires registries, correlator, dispatcher and delegation from config."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from conduit.agent.definition import AgentDefinition, AgentRegistry
from conduit.agent.delegation import DelegationManager
from conduit.agent.dispatcher import ToolDispatcher
from conduit.agent.events import EventEmitter
from conduit.agent.loop import ExecutionLog, LoopSettings, ReActLoop
from conduit.agent.presets import default_agents
from conduit.executor.correlator import CommandCorrelator
from conduit.tools.delegation import create_delegation_tool
from conduit.tools.registry import ToolRegistry
from conduit.tools.web import create_web_tools

if TYPE_CHECKING:
    from conduit.config.schema import ConduitConfig
    from conduit.llm.client import LLMClient, Message

logger = logging.getLogger(__name__)


def build_agent_registry(config: ConduitConfig) -> AgentRegistry:
    """Create the agent catalog: built-in presets overlaid with configured agents.

    Args:
        config: Conduit configuration

    Returns:
        Populated AgentRegistry
    """
    registry = AgentRegistry(default_agents())
    for agent in config.agents:
        if "max_iterations" not in agent.model_fields_set:
            agent = agent.model_copy(update={"max_iterations": config.agent.max_iterations})
        registry.register(agent, replace=True)
    return registry


def build_tool_registry(config: ConduitConfig, agent_ids: list[str]) -> ToolRegistry:
    """Create the tool catalog with the engine-internal tools.

    Remote tools are added later, when an executor completes its handshake.
    """
    registry = ToolRegistry(create_web_tools())
    if config.delegation.enabled:
        targets = [a for a in agent_ids if a != config.delegation.root_agent_id]
        registry.add_local(create_delegation_tool(targets))
    return registry


def settings_from_config(config: ConduitConfig) -> LoopSettings:
    return LoopSettings(
        stop_on_error=config.agent.stop_on_error,
        retry_on_unavailable=config.agent.retry_on_unavailable,
        verbose=config.agent.verbose,
        completion_phrases=tuple(config.agent.completion_phrases),
    )


class Engine:
    """One engine instance: a single executor session shared by all invocations."""

    def __init__(self, config: ConduitConfig, llm: LLMClient) -> None:
        self.config = config
        self.llm = llm
        self.agents = build_agent_registry(config)
        self.tools = build_tool_registry(config, self.agents.ids)
        self.emitter = EventEmitter()
        self.correlator = CommandCorrelator(
            registry=self.tools,
            command_timeout=config.executor.command_timeout,
            server_name=config.executor.server_name,
            ping_interval=config.executor.ping_interval,
        )
        self.dispatcher = ToolDispatcher(self.tools, correlator=self.correlator)
        self.settings = settings_from_config(config)

        if config.delegation.enabled:
            self.dispatcher.delegation = DelegationManager(
                agents=self.agents,
                llm=llm,
                registry=self.tools,
                dispatcher=self.dispatcher,
                emitter=self.emitter,
                root_agent_id=config.delegation.root_agent_id,
                max_depth=config.delegation.max_depth,
                max_iterations=config.delegation.max_iterations,
                settings=self.settings,
            )

    def get_agent(self, agent_id: str | None = None) -> AgentDefinition | None:
        return self.agents.get(agent_id or self.config.agent.default_agent_id)

    def create_loop(
        self,
        agent: AgentDefinition,
        message: str,
        history: list[Message] | None = None,
    ) -> ReActLoop:
        """Create a top-level loop for one invocation."""
        return ReActLoop(
            agent=agent,
            task=message,
            llm=self.llm,
            registry=self.tools,
            dispatcher=self.dispatcher,
            emitter=self.emitter,
            settings=self.settings,
            history=history,
        )

    async def run(
        self,
        message: str,
        agent_id: str | None = None,
        history: list[Message] | None = None,
    ) -> ExecutionLog:
        """Run one invocation to completion.

        Args:
            message: User message
            agent_id: Agent to run (defaults to the configured default agent)
            history: Prior conversation turns

        Returns:
            Finalized execution log

        Raises:
            KeyError: If the agent id is unknown
        """
        agent = self.get_agent(agent_id)
        if agent is None:
            raise KeyError(f"Agent not found: {agent_id}")
        logger.info("Running agent %s", agent.id)
        return await self.create_loop(agent, message, history).run()
