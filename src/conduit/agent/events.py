"""Lifecycle event stream for agent invocations.

Events are emitted synchronously in the order the loop produces them and
fanned out to listeners (plain callbacks) and subscriptions (async queues).
A failing or slow observer is dropped or skipped without affecting the
loop or the other observers.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

EventType = Literal[
    "step_start",
    "thought",
    "action",
    "observation",
    "step_complete",
    "final_response",
    "error",
    "delegation_start",
    "delegation_end",
]

EventListener = Callable[["AgentEvent"], Any]


class AgentEvent(BaseModel):
    """One lifecycle event, tagged with the agent that produced it."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: EventType
    agent_id: str | None = None
    agent_name: str | None = None
    step_number: int | None = None
    thought: str | None = None
    action: dict[str, Any] | None = None
    observation: dict[str, Any] | None = None
    final_response: str | None = None
    error: str | None = None
    delegated_agent_id: str | None = None
    delegated_agent_name: str | None = None
    delegated_task: str | None = None

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys and unset fields omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Subscription:
    """Queue-backed event subscription.

    Iterate with ``async for``; iteration ends when the subscription is closed.
    """

    _CLOSED = object()

    def __init__(self, emitter: EventEmitter, max_size: int) -> None:
        self._emitter = emitter
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=max_size)
        self.closed = False

    def _offer(self, event: AgentEvent) -> bool:
        if self.closed:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        return True

    async def get(self) -> AgentEvent | None:
        """Next event, or None once the subscription is closed."""
        if self.closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is self._CLOSED:
            return None
        return item

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._emitter.unsubscribe(self)
        # Wake a waiting reader; a full queue is drained before the sentinel matters
        try:
            self._queue.put_nowait(self._CLOSED)
        except asyncio.QueueFull:
            pass

    def __aiter__(self) -> AsyncIterator[AgentEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[AgentEvent]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event


class EventEmitter:
    """Broadcasts :class:`AgentEvent` objects to any number of observers."""

    def __init__(self, max_queue_size: int = 1000) -> None:
        self.max_queue_size = max_queue_size
        self._listeners: list[EventListener] = []
        self._subscriptions: list[Subscription] = []

    @property
    def observer_count(self) -> int:
        return len(self._listeners) + len(self._subscriptions)

    def add_listener(self, listener: EventListener) -> Callable[[], None]:
        """Register a synchronous callback.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def subscribe(self) -> Subscription:
        """Create a queue subscription that sees events emitted from now on."""
        subscription = Subscription(self, self.max_queue_size)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def emit(self, event: AgentEvent) -> None:
        """Deliver an event to every observer without blocking."""
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed on %s event; continuing", event.type)

        for subscription in list(self._subscriptions):
            if not subscription._offer(event):
                logger.warning("Dropping event subscriber that stopped reading")
                subscription.close()
