"""Agent definitions and the in-memory agent catalog.

Definitions are read-only snapshots: the engine never mutates them while a
loop runs. Persistent storage is an external collaborator that only needs
to satisfy :class:`AgentStore`.
"""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_MODEL_ID = "@cf/meta/llama-3.3-70b-instruct-fp8-fast"


class ToolReference(BaseModel):
    """Reference from an agent to a catalog tool."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    tool_id: str
    enabled: bool = True


class AgentDefinition(BaseModel):
    """Configuration of one agent."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    purpose: str
    system_prompt: str
    tools: list[ToolReference] = Field(default_factory=list)
    model_id: str = DEFAULT_MODEL_ID
    max_iterations: int = Field(default=5, ge=1, le=20)
    delegates: list[str] = Field(
        default_factory=list,
        description="Agent ids this agent may delegate to (empty = any non-root agent)",
    )

    @property
    def enabled_tool_ids(self) -> list[str]:
        return [ref.tool_id for ref in self.tools if ref.enabled]


class AgentStore(Protocol):
    """Read-only lookup contract of the agent storage collaborator."""

    def get(self, agent_id: str) -> AgentDefinition | None: ...

    def list_agents(self) -> list[AgentDefinition]: ...


def validate_agent(agent: AgentDefinition) -> tuple[bool, list[str]]:
    """Check an agent definition for missing or out-of-range fields.

    Args:
        agent: Definition to check

    Returns:
        Tuple of (valid, errors)
    """
    errors = []
    if not agent.name.strip():
        errors.append("Agent name is required")
    if not agent.purpose.strip():
        errors.append("Agent purpose is required")
    if not agent.system_prompt.strip():
        errors.append("System prompt is required")
    if not agent.enabled_tool_ids:
        errors.append("At least one tool must be enabled")
    if not agent.model_id.strip():
        errors.append("Model ID is required")
    if not 1 <= agent.max_iterations <= 20:
        errors.append("Max iterations must be between 1 and 20")
    return not errors, errors


class AgentRegistry:
    """In-memory agent catalog implementing :class:`AgentStore`."""

    def __init__(self, agents: list[AgentDefinition] | None = None) -> None:
        self._agents: dict[str, AgentDefinition] = {}
        for agent in agents or []:
            self.register(agent)

    def register(self, agent: AgentDefinition, replace: bool = False) -> None:
        """Register an agent definition.

        Args:
            agent: Definition to add
            replace: Overwrite an existing definition with the same id

        Raises:
            ValueError: If the id is taken and ``replace`` is False
        """
        if agent.id in self._agents and not replace:
            raise ValueError(f"Agent '{agent.id}' already registered")
        self._agents[agent.id] = agent

    def get(self, agent_id: str) -> AgentDefinition | None:
        return self._agents.get(agent_id)

    def has(self, agent_id: str) -> bool:
        """Check if an agent is registered."""
        return agent_id in self._agents

    def list_agents(self) -> list[AgentDefinition]:
        """List all registered agent definitions."""
        return list(self._agents.values())

    @property
    def ids(self) -> list[str]:
        return list(self._agents.keys())
