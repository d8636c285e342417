"""Definition of the delegation tool.

The tool has no local handler: the dispatcher routes ``delegate_to_agent``
calls to the :class:`~conduit.agent.delegation.DelegationManager`.
"""

from __future__ import annotations

from collections.abc import Iterable

from conduit.tools.base import LocalTool, ToolDefinition, ToolParameter

DELEGATE_TOOL_ID = "delegate_to_agent"


def create_delegation_tool(agent_ids: Iterable[str]) -> LocalTool:
    """Create the ``delegate_to_agent`` tool.

    Args:
        agent_ids: Agents that may be named as a target (listed in the description)

    Returns:
        LocalTool without a handler
    """
    examples = ", ".join(agent_ids)
    definition = ToolDefinition(
        id=DELEGATE_TOOL_ID,
        name="Delegate to Agent",
        description=(
            "Delegate a task to another specialized agent. "
            "The agent will execute the task and return the result."
        ),
        category="orchestration",
        parameters=[
            ToolParameter(
                name="agent_id",
                type="string",
                description=f"ID of the agent to delegate to (e.g., {examples})",
                required=True,
            ),
            ToolParameter(
                name="task",
                type="string",
                description="The task description to send to the agent",
                required=True,
            ),
        ],
    )
    return LocalTool(definition=definition)
