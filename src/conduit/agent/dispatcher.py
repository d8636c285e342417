"""Routes validated tool calls to their executor."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from conduit.errors import CommandTimeoutError, ExecutorDisconnectedError, ExecutorUnavailableError
from conduit.tools.base import ToolCallRequest, ToolCallResult
from conduit.tools.delegation import DELEGATE_TOOL_ID

if TYPE_CHECKING:
    from conduit.agent.definition import AgentDefinition
    from conduit.agent.delegation import DelegationContext, DelegationManager
    from conduit.executor.correlator import CommandCorrelator
    from conduit.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> float:
    return round((time.monotonic() - start) * 1000, 2)


def interpret_reply(tool_id: str, reply: dict[str, Any], elapsed: float) -> ToolCallResult:
    """Convert an executor reply envelope into a :class:`ToolCallResult`.

    Args:
        tool_id: Tool the command was sent for
        reply: Reply message (``commandId`` included)
        elapsed: Round-trip time in milliseconds

    Returns:
        Tool call result
    """
    payload = {k: v for k, v in reply.items() if k != "commandId"}
    reply_type = payload.get("type")

    if reply_type == "error" or payload.get("success") is False:
        error = payload.get("error") or payload.get("message") or "Executor reported an error"
        return ToolCallResult(tool_id=tool_id, success=False, error=str(error), execution_time=elapsed)

    if "result" in payload:
        result: Any = payload["result"]
    elif reply_type == "success" and set(payload) <= {"type", "message", "success"}:
        result = payload.get("message", "ok")
    else:
        result = payload

    return ToolCallResult(tool_id=tool_id, success=True, result=result, execution_time=elapsed)


class ToolDispatcher:
    """Executes a tool call locally, on the remote executor, or via delegation.

    Tool failures, command timeouts and mid-command disconnects come back as
    failed :class:`ToolCallResult` objects. A missing executor connection is
    raised as :class:`ExecutorUnavailableError` so the loop can apply its
    retry policy.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        correlator: CommandCorrelator | None = None,
        delegation: DelegationManager | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            registry: Tool catalog (decides local vs. remote)
            correlator: Command correlator for executor tools
            delegation: Delegation manager for ``delegate_to_agent``
        """
        self.registry = registry
        self.correlator = correlator
        self.delegation = delegation

    async def dispatch(
        self,
        request: ToolCallRequest,
        agent: AgentDefinition,
        delegation_context: DelegationContext | None = None,
    ) -> ToolCallResult:
        """Execute one validated tool call.

        Args:
            request: Tool id and normalized arguments
            agent: Agent issuing the call
            delegation_context: Delegation chain of the issuing loop

        Returns:
            Tool call result

        Raises:
            ExecutorUnavailableError: If a remote tool is called with no executor connected
        """
        if request.tool_id == DELEGATE_TOOL_ID:
            return await self._delegate(request, agent, delegation_context)

        if self.registry.is_local(request.tool_id):
            return await self._execute_local(request)

        return await self._execute_remote(request)

    async def _delegate(
        self,
        request: ToolCallRequest,
        agent: AgentDefinition,
        delegation_context: DelegationContext | None,
    ) -> ToolCallResult:
        if self.delegation is None:
            return ToolCallResult(
                tool_id=request.tool_id, success=False, error="Delegation is not available"
            )
        return await self.delegation.delegate(
            agent,
            str(request.arguments.get("agent_id", "")),
            str(request.arguments.get("task", "")),
            delegation_context,
        )

    async def _execute_local(self, request: ToolCallRequest) -> ToolCallResult:
        local_tool = self.registry.get_local(request.tool_id)
        declared = {p.name for p in local_tool.definition.parameters}
        kwargs = {k: v for k, v in request.arguments.items() if k in declared}

        start = time.monotonic()
        try:
            result = await local_tool.execute(**kwargs)
        except Exception as e:
            logger.warning("Local tool '%s' failed: %s", request.tool_id, e)
            return ToolCallResult(
                tool_id=request.tool_id,
                success=False,
                error=str(e) or type(e).__name__,
                execution_time=_elapsed_ms(start),
            )

        return ToolCallResult(
            tool_id=request.tool_id, success=True, result=result, execution_time=_elapsed_ms(start)
        )

    async def _execute_remote(self, request: ToolCallRequest) -> ToolCallResult:
        if self.correlator is None:
            raise ExecutorUnavailableError("No executor configured")

        start = time.monotonic()
        # The tool id is authoritative even if an argument is named "type"
        command = {**request.arguments, "type": request.tool_id}
        try:
            reply = await self.correlator.send(command)
        except CommandTimeoutError as e:
            return ToolCallResult(
                tool_id=request.tool_id, success=False, error=str(e), execution_time=_elapsed_ms(start)
            )
        except ExecutorDisconnectedError as e:
            logger.warning("Executor dropped while running '%s': %s", request.tool_id, e)
            return ToolCallResult(
                tool_id=request.tool_id, success=False, error=str(e), execution_time=_elapsed_ms(start)
            )

        return interpret_reply(request.tool_id, reply, _elapsed_ms(start))
