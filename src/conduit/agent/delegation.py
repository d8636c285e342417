"""Delegation: one agent hands a sub-task to another agent's loop."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from conduit.agent.events import AgentEvent, EventEmitter
from conduit.agent.loop import LoopSettings, ReActLoop
from conduit.errors import (
    DelegationDepthExceeded,
    DelegationError,
    DelegationRecursionError,
    UnknownAgentError,
)
from conduit.tools.base import ToolCallResult
from conduit.tools.delegation import DELEGATE_TOOL_ID

if TYPE_CHECKING:
    from conduit.agent.definition import AgentDefinition, AgentStore
    from conduit.agent.dispatcher import ToolDispatcher
    from conduit.llm.client import LLMClient
    from conduit.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


@dataclass
class DelegationContext:
    """Tracks the delegation chain from root agent to current agent.

    Enforces max_depth and detects cycles (no agent id may appear
    twice in the chain).
    """

    chain: list[str] = field(default_factory=list)
    max_depth: int = 1

    @property
    def depth(self) -> int:
        """Number of delegation hops below the top-level agent."""
        return max(len(self.chain) - 1, 0)

    def can_delegate(self, target_id: str) -> tuple[bool, str]:
        """Check if delegation to the target agent is allowed.

        Args:
            target_id: Id of the agent to delegate to

        Returns:
            Tuple of (allowed, reason_string)
        """
        if self.depth >= self.max_depth:
            return False, f"Maximum delegation depth ({self.max_depth}) reached"

        if target_id in self.chain:
            return False, f"Cycle detected: '{target_id}' already in chain {self.chain}"

        return True, ""

    def child_context(self, agent_id: str) -> DelegationContext:
        """Create a child context for a delegated agent.

        Args:
            agent_id: Id of the agent being delegated to

        Returns:
            New DelegationContext with extended chain
        """
        return DelegationContext(
            chain=[*self.chain, agent_id],
            max_depth=self.max_depth,
        )


class DelegationManager:
    """Runs delegated sub-tasks as fresh :class:`ReActLoop` instances.

    Rejections (unknown agent, root target, cycles, depth) are returned as
    failed tool results before any nested loop starts, so the delegating
    agent sees them as observations.
    """

    def __init__(
        self,
        agents: AgentStore,
        llm: LLMClient,
        registry: ToolRegistry,
        dispatcher: ToolDispatcher,
        emitter: EventEmitter,
        root_agent_id: str = "orchestrator-agent",
        max_depth: int = 1,
        max_iterations: int = 5,
        settings: LoopSettings | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            agents: Agent catalog to resolve targets against
            llm: Model provider shared with nested loops
            registry: Tool catalog shared with nested loops
            dispatcher: Dispatcher shared with nested loops
            emitter: Event stream shared with nested loops
            root_agent_id: Agent that may never be a delegation target
            max_depth: Maximum delegation hops
            max_iterations: Iteration cap applied to delegated loops
            settings: Base loop policy for nested loops
        """
        self.agents = agents
        self.llm = llm
        self.registry = registry
        self.dispatcher = dispatcher
        self.emitter = emitter
        self.root_agent_id = root_agent_id
        self.max_depth = max_depth
        self.max_iterations = max_iterations
        self.settings = settings or LoopSettings()

    def _resolve(
        self, source: AgentDefinition, target_id: str, context: DelegationContext
    ) -> AgentDefinition:
        target = self.agents.get(target_id) if target_id else None
        if target is None:
            available = [a.id for a in self.agents.list_agents() if a.id != self.root_agent_id]
            raise UnknownAgentError(target_id, available)

        if target.id == self.root_agent_id:
            raise DelegationRecursionError(
                f"Cannot delegate to the orchestrator agent ({self.root_agent_id})"
            )

        if source.delegates and target.id not in source.delegates:
            raise DelegationError(
                f"Agent {source.id} may only delegate to: {', '.join(source.delegates)}"
            )

        allowed, reason = context.can_delegate(target.id)
        if not allowed:
            if target.id in context.chain:
                raise DelegationRecursionError(reason)
            raise DelegationDepthExceeded(reason)

        return target

    async def delegate(
        self,
        source: AgentDefinition,
        target_agent_id: str,
        task: str,
        context: DelegationContext | None = None,
    ) -> ToolCallResult:
        """Run ``task`` on the target agent and summarize the outcome.

        Args:
            source: Agent issuing the delegation
            target_agent_id: Agent to hand the task to
            task: Sub-task text, used as the nested loop's only user turn
            context: Delegation chain of the source loop (None = top level)

        Returns:
            Tool call result whose payload summarizes the nested run
        """
        context = context or DelegationContext(chain=[source.id], max_depth=self.max_depth)
        start = time.monotonic()

        try:
            target = self._resolve(source, target_agent_id, context)
        except DelegationError as e:
            logger.warning("[%s] Delegation rejected: %s", source.id, e)
            return ToolCallResult(tool_id=DELEGATE_TOOL_ID, success=False, error=str(e))

        if not task.strip():
            return ToolCallResult(
                tool_id=DELEGATE_TOOL_ID, success=False, error="Delegation task must not be empty"
            )

        logger.info("[%s] Delegating to %s: %s", source.id, target.id, task)
        self.emitter.emit(
            AgentEvent(
                type="delegation_start",
                agent_id=source.id,
                agent_name=source.name,
                delegated_agent_id=target.id,
                delegated_agent_name=target.name,
                delegated_task=task,
            )
        )

        loop = ReActLoop(
            agent=target,
            task=task,
            llm=self.llm,
            registry=self.registry,
            dispatcher=self.dispatcher,
            emitter=self.emitter,
            settings=replace(
                self.settings, max_iterations=min(target.max_iterations, self.max_iterations)
            ),
            delegation_context=context.child_context(target.id),
        )
        try:
            log = await loop.run()
        finally:
            # Cancellation still closes the delegation for observers
            self.emitter.emit(
                AgentEvent(
                    type="delegation_end",
                    agent_id=source.id,
                    agent_name=source.name,
                    delegated_agent_id=target.id,
                    delegated_agent_name=target.name,
                    delegated_task=task,
                    final_response=loop.log.final_response,
                )
            )

        summary = {
            "delegatedAgent": target.name,
            "delegatedAgentId": target.id,
            "task": task,
            "status": log.status,
            "response": log.final_response,
            "stepsExecuted": len(log.steps),
            "toolCallsMade": log.tool_calls_count,
            "iterations": [step.to_dict() for step in log.steps],
        }
        elapsed = round((time.monotonic() - start) * 1000, 2)
        if log.status != "success":
            return ToolCallResult(
                tool_id=DELEGATE_TOOL_ID,
                success=False,
                result=summary,
                error=f"Delegated agent {target.name} failed: {log.error or log.final_response}",
                execution_time=elapsed,
            )
        return ToolCallResult(
            tool_id=DELEGATE_TOOL_ID, success=True, result=summary, execution_time=elapsed
        )
