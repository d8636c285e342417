"""Exception types raised by the engine.

Tool-level failures (validation, unknown tool, command timeout) are normally
converted into observations so the model can correct itself. Provider and
delegation-setup failures terminate the invocation.
"""

from __future__ import annotations


class ConduitError(Exception):
    """Base class for all engine errors."""


class ToolValidationError(ConduitError):
    """Tool arguments failed schema validation."""

    def __init__(self, tool_id: str, errors: list[str]):
        self.tool_id = tool_id
        self.errors = errors
        super().__init__(f"Tool validation failed for '{tool_id}': {', '.join(errors)}")


class ToolNotFoundError(ConduitError):
    """Tool id is unknown or no longer part of the catalog."""

    def __init__(self, tool_id: str):
        self.tool_id = tool_id
        super().__init__(f"Tool not found: {tool_id}")


class ExecutorUnavailableError(ConduitError):
    """No remote executor is connected."""


class CommandTimeoutError(ConduitError):
    """The remote executor did not reply before the deadline."""

    def __init__(self, command_id: str, timeout: float):
        self.command_id = command_id
        self.timeout = timeout
        super().__init__(f"Command timeout - no response from client after {timeout:g}s")


class ExecutorDisconnectedError(ConduitError):
    """The executor connection closed while a command was pending."""


class ProviderError(ConduitError):
    """The model provider call failed."""


class DelegationError(ConduitError):
    """Delegation was rejected before a nested loop started."""


class UnknownAgentError(DelegationError):
    """Delegation target is not in the agent catalog."""

    def __init__(self, agent_id: str, available: list[str]):
        self.agent_id = agent_id
        self.available = available
        super().__init__(f"Agent not found: {agent_id}. Available agents: {', '.join(available)}")


class DelegationRecursionError(DelegationError):
    """Delegation target would create a cycle."""


class DelegationDepthExceeded(DelegationError):
    """Delegation chain is already at its maximum depth."""
