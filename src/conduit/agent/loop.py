"""ReAct loop: thought -> action -> observation until the agent concludes."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from conduit.agent.events import AgentEvent, EventEmitter
from conduit.agent.parsing import extract_thought, parse_tool_calls
from conduit.agent.prompts import format_action_turn, format_observation_turn, interpolate_prompt
from conduit.errors import (
    ConduitError,
    ExecutorUnavailableError,
    ProviderError,
    ToolNotFoundError,
    ToolValidationError,
)
from conduit.llm.client import Message
from conduit.tools.base import ToolCallRequest, ToolCallResult
from conduit.tools.delegation import DELEGATE_TOOL_ID

if TYPE_CHECKING:
    from conduit.agent.definition import AgentDefinition
    from conduit.agent.delegation import DelegationContext
    from conduit.agent.dispatcher import ToolDispatcher
    from conduit.llm.client import LLMClient
    from conduit.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_COMPLETION_PHRASES = ("done", "complete", "finished", "task completed", "no more actions")


class TerminationReason(str, Enum):
    """Why a loop stopped."""

    MODEL_CONCLUDED = "model_concluded"
    MAX_ITERATIONS = "max_iterations"
    ERROR = "error"
    STOPPED_EXTERNALLY = "stopped_externally"


@dataclass
class StepAction:
    tool: str
    parameters: dict[str, Any]


@dataclass
class Observation:
    result: Any = None
    error: str | None = None


@dataclass
class ExecutionStep:
    """Record of one loop iteration."""

    step_number: int
    thought: str = ""
    action: StepAction | None = None
    observation: Observation | None = None
    agent_id: str | None = None
    agent_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "stepNumber": self.step_number,
            "thought": self.thought,
            "agentId": self.agent_id,
            "agentName": self.agent_name,
        }
        if self.action is not None:
            data["action"] = {"tool": self.action.tool, "parameters": self.action.parameters}
        if self.observation is not None:
            data["observation"] = {"result": self.observation.result, "error": self.observation.error}
        return data


@dataclass
class ExecutionLog:
    """Append-only record of one invocation, finalized exactly once."""

    agent_id: str
    user_message: str
    agent_name: str | None = None
    steps: list[ExecutionStep] = field(default_factory=list)
    final_response: str = ""
    execution_time: float = 0.0  # milliseconds
    completed_at: str | None = None
    status: str = "running"  # running | success | error | interrupted
    error: str | None = None
    termination_reason: TerminationReason | None = None
    incomplete: bool = False
    _started: float = field(default_factory=time.monotonic, repr=False)

    @property
    def finalized(self) -> bool:
        return self.completed_at is not None

    @property
    def tool_calls_count(self) -> int:
        return sum(1 for step in self.steps if step.action is not None)

    def append(self, step: ExecutionStep) -> None:
        if self.finalized:
            raise RuntimeError("Execution log is already finalized")
        self.steps.append(step)

    def finalize(
        self,
        status: str,
        reason: TerminationReason,
        final_response: str,
        error: str | None = None,
    ) -> None:
        """Close the log.

        Raises:
            RuntimeError: If the log was already finalized
        """
        if self.finalized:
            raise RuntimeError("Execution log is already finalized")
        self.status = status
        self.termination_reason = reason
        self.final_response = final_response
        self.error = error
        self.incomplete = reason is TerminationReason.MAX_ITERATIONS
        self.execution_time = round((time.monotonic() - self._started) * 1000, 2)
        self.completed_at = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> dict[str, Any]:
        return {
            "agentId": self.agent_id,
            "agentName": self.agent_name,
            "userMessage": self.user_message,
            "iterations": [step.to_dict() for step in self.steps],
            "finalResponse": self.final_response,
            "toolCallsCount": self.tool_calls_count,
            "executionTime": self.execution_time,
            "completedAt": self.completed_at,
            "status": self.status,
            "error": self.error,
            "terminationReason": self.termination_reason.value if self.termination_reason else None,
            "incomplete": self.incomplete,
        }


@dataclass
class LoopSettings:
    """Per-invocation loop policy."""

    max_iterations: int | None = None  # None = use the agent's own limit
    stop_on_error: bool = False
    retry_on_unavailable: bool = False
    verbose: bool = False
    completion_phrases: tuple[str, ...] = DEFAULT_COMPLETION_PHRASES


def is_final_action(thought: str, phrases: tuple[str, ...] | list[str]) -> bool:
    """Heuristic: does the thought announce that the task is finished?

    Phrases match on word boundaries, so ``done`` does not match ``abandoned``.
    """
    lowered = thought.lower()
    return any(re.search(rf"\b{re.escape(phrase.lower())}\b", lowered) for phrase in phrases)


class ReActLoop:
    """Runs one agent invocation.

    Each iteration asks the model for the next step, executes at most one
    proposed tool call and feeds the observation back as a user-role turn.
    Invalid calls and tool failures become observations so the model can
    correct itself; provider failures end the invocation with status
    ``error``. The loop instance is single-use.
    """

    def __init__(
        self,
        agent: AgentDefinition,
        task: str,
        llm: LLMClient,
        registry: ToolRegistry,
        dispatcher: ToolDispatcher,
        emitter: EventEmitter | None = None,
        settings: LoopSettings | None = None,
        delegation_context: DelegationContext | None = None,
        history: list[Message] | None = None,
    ):
        """Initialize the loop.

        Args:
            agent: Agent definition snapshot
            task: User task for this invocation
            llm: Model provider
            registry: Tool catalog used for normalization and validation
            dispatcher: Tool dispatcher
            emitter: Event stream shared with observers (and nested loops)
            settings: Loop policy
            delegation_context: Position in a delegation chain (None = top level)
            history: Prior conversation turns, inserted before the task
        """
        self.agent = agent
        self.task = task
        self.llm = llm
        self.registry = registry
        self.dispatcher = dispatcher
        self.emitter = emitter or EventEmitter()
        self.settings = settings or LoopSettings()
        self.delegation_context = delegation_context
        self.history = list(history or [])

        self.max_iterations = self.settings.max_iterations or agent.max_iterations
        self.log = ExecutionLog(agent_id=agent.id, agent_name=agent.name, user_message=task)
        self._stop_requested = False
        self._task: asyncio.Task | None = None
        self._started = False

    def stop(self) -> None:
        """Stop the loop, cancelling any in-flight provider call or command.

        A stop requested before :meth:`run` starts makes the run end as
        interrupted without calling the model.
        """
        self._stop_requested = True
        # From inside the run task (e.g. an event listener) the flag is enough
        if (
            self._task is not None
            and not self._task.done()
            and self._task is not asyncio.current_task()
        ):
            self._task.cancel()

    @property
    def tool_ids(self) -> list[str]:
        """Tools exposed to the model for this invocation."""
        tool_ids = self.agent.enabled_tool_ids
        if DELEGATE_TOOL_ID in tool_ids and not self._can_delegate():
            tool_ids = [t for t in tool_ids if t != DELEGATE_TOOL_ID]
        return tool_ids

    def _can_delegate(self) -> bool:
        if self.dispatcher.delegation is None:
            return False
        if self.delegation_context is None:
            return True
        return self.delegation_context.depth < self.delegation_context.max_depth

    def _emit(self, event_type: str, **fields: Any) -> None:
        self.emitter.emit(
            AgentEvent(type=event_type, agent_id=self.agent.id, agent_name=self.agent.name, **fields)
        )

    def _trace(self, msg: str, *args: Any) -> None:
        logger.log(logging.INFO if self.settings.verbose else logging.DEBUG, msg, *args)

    def _build_messages(self, system_prompt: str) -> list[Message]:
        messages = [Message(role="system", content=system_prompt)]
        messages.extend(self.history)
        messages.append(Message(role="user", content=self.task))

        for step in self.log.steps:
            if step.thought or step.action:
                action = step.action
                messages.append(
                    Message(
                        role="assistant",
                        content=format_action_turn(
                            step.thought,
                            action.tool if action else None,
                            action.parameters if action else None,
                        ),
                    )
                )
            if step.observation is not None:
                messages.append(
                    Message(
                        role="user",
                        content=format_observation_turn(
                            step.observation.result, step.observation.error
                        ),
                    )
                )
        return messages

    async def _complete(self, messages: list[Message], tool_ids: list[str]):
        tools = self.registry.schemas_for(tool_ids)
        try:
            return await self.llm.complete(messages, tools=tools or None, model=self.agent.model_id)
        except ConduitError:
            raise
        except Exception as e:
            raise ProviderError(f"LLM call failed: {e}") from e

    def _validate(self, request: ToolCallRequest, tool_ids: list[str]) -> None:
        """Check a proposed call against the catalog and the agent's tools.

        Raises:
            ToolNotFoundError: If the id is not in the catalog (stale or invented)
            ToolValidationError: If the arguments or the agent's tool list reject it
        """
        if self.registry.lookup(request.tool_id) is None:
            raise ToolNotFoundError(request.tool_id)
        validation = self.registry.validate(request.tool_id, request.arguments)
        if not validation.valid:
            raise ToolValidationError(request.tool_id, validation.errors)
        if request.tool_id not in tool_ids:
            raise ToolValidationError(
                request.tool_id, [f"Tool not enabled for agent {self.agent.id}: {request.tool_id}"]
            )

    def _validation_errors(self, request: ToolCallRequest, tool_ids: list[str]) -> list[str]:
        try:
            self._validate(request, tool_ids)
        except ToolNotFoundError as e:
            logger.warning("[%s] %s", self.agent.id, e)
            return [str(e)]
        except ToolValidationError as e:
            logger.info("[%s] %s", self.agent.id, e)
            return e.errors
        return []

    async def run(self) -> ExecutionLog:
        """Run the loop to completion.

        Returns:
            The finalized execution log

        Raises:
            asyncio.CancelledError: If cancelled from outside without :meth:`stop`
        """
        if self._started:
            raise RuntimeError("ReActLoop instances are single-use")
        self._started = True
        self._task = asyncio.current_task()

        log = self.log
        tool_ids = self.tool_ids
        system_prompt = interpolate_prompt(
            self.agent.system_prompt,
            {"purpose": self.agent.purpose, "tools": self.registry.describe(tool_ids)},
        )
        step: ExecutionStep | None = None

        try:
            reason: TerminationReason | None = None
            final_response = ""
            error: str | None = None

            while reason is None and len(log.steps) < self.max_iterations:
                if self._stop_requested:
                    logger.info("[%s] Stop requested, ending before next step", self.agent.id)
                    self._interrupt(None)
                    return log

                step = ExecutionStep(
                    step_number=len(log.steps) + 1,
                    agent_id=self.agent.id,
                    agent_name=self.agent.name,
                )
                self._trace("[%s] Step %d/%d", self.agent.id, step.step_number, self.max_iterations)
                self._emit("step_start", step_number=step.step_number)

                response = await self._complete(self._build_messages(system_prompt), tool_ids)
                self._trace("[%s] Model response: %r", self.agent.id, response)

                step.thought = extract_thought(response)
                self._emit("thought", step_number=step.step_number, thought=step.thought)

                calls = parse_tool_calls(response)
                if len(calls) > 1:
                    logger.debug("Ignoring %d extra tool calls in one response", len(calls) - 1)

                if not calls:
                    reason = TerminationReason.MODEL_CONCLUDED
                    final_response = (response.content or "").strip() or step.thought
                else:
                    request = calls[0]
                    request.arguments = self.registry.normalize_arguments(
                        request.tool_id, request.arguments
                    )
                    errors = self._validation_errors(request, tool_ids)

                    if errors:
                        step.observation = Observation(
                            error=f"Tool validation failed: {', '.join(errors)}"
                        )
                        self._emit(
                            "observation",
                            step_number=step.step_number,
                            observation={"result": None, "error": step.observation.error},
                        )
                        if self.settings.stop_on_error:
                            reason = TerminationReason.ERROR
                            error = ", ".join(errors)
                    else:
                        result = await self._act(step, request)
                        if not result.success and self.settings.stop_on_error:
                            reason = TerminationReason.ERROR
                            error = result.error
                        elif result.success and is_final_action(
                            step.thought, self.settings.completion_phrases
                        ):
                            reason = TerminationReason.MODEL_CONCLUDED
                            final_response = f"Completed action: {request.tool_id}"

                log.append(step)
                step = None
                self._emit("step_complete", step_number=log.steps[-1].step_number)

            if reason is None:
                reason = TerminationReason.MAX_ITERATIONS
                final_response = (
                    log.steps[-1].thought if log.steps else ""
                ) or "Maximum iterations reached"
                logger.info("[%s] Maximum iterations (%d) reached", self.agent.id, self.max_iterations)

            if reason is TerminationReason.ERROR:
                final_response = final_response or f"Error: {error}"
                log.finalize("error", reason, final_response, error=error)
                self._emit("error", error=error)
            else:
                log.finalize("success", reason, final_response)
                self._emit("final_response", final_response=final_response)

        except asyncio.CancelledError:
            self._interrupt(step)
            if not self._stop_requested:
                raise
            current = asyncio.current_task()
            if current is not None:
                current.uncancel()

        except Exception as e:
            if not isinstance(e, ConduitError):
                logger.exception("[%s] Unexpected failure in ReAct loop", self.agent.id)
            else:
                logger.error("[%s] Invocation failed: %s", self.agent.id, e)
            message = str(e) or type(e).__name__
            self._record_unfinished(step, message)
            log.finalize("error", TerminationReason.ERROR, f"Error: {message}", error=message)
            self._emit("error", error=message)

        return log

    async def _act(self, step: ExecutionStep, request: ToolCallRequest) -> ToolCallResult:
        step.action = StepAction(tool=request.tool_id, parameters=request.arguments)
        self._emit(
            "action",
            step_number=step.step_number,
            action={"tool": request.tool_id, "parameters": request.arguments},
        )

        try:
            result = await self.dispatcher.dispatch(request, self.agent, self.delegation_context)
        except ExecutorUnavailableError as e:
            logger.warning("[%s] Executor unavailable for '%s': %s", self.agent.id, request.tool_id, e)
            if not self.settings.retry_on_unavailable:
                raise
            result = ToolCallResult(tool_id=request.tool_id, success=False, error=str(e))

        step.observation = Observation(result=result.result, error=result.error)
        self._emit(
            "observation",
            step_number=step.step_number,
            observation={"result": result.result, "error": result.error},
        )
        self._trace("[%s] Observation: %r", self.agent.id, step.observation)
        return result

    def _interrupt(self, step: ExecutionStep | None) -> None:
        self._record_unfinished(step, "Execution interrupted")
        self.log.finalize(
            "interrupted",
            TerminationReason.STOPPED_EXTERNALLY,
            "Execution interrupted",
            error="Execution interrupted",
        )
        self._emit("error", error="Execution interrupted")

    def _record_unfinished(self, step: ExecutionStep | None, error: str) -> None:
        """Keep a step that was cut short in the log, marked with the error."""
        if step is None or self.log.finalized:
            return
        if step.action is not None and step.observation is None:
            step.observation = Observation(error=error)
        if step.action is not None or step.thought:
            self.log.append(step)
