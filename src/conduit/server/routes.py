"""API routes for the conduit server."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sse_starlette.sse import EventSourceResponse

from conduit import __version__
from conduit.agent.engine import Engine
from conduit.errors import CommandTimeoutError, ExecutorDisconnectedError, ExecutorUnavailableError
from conduit.llm.client import Message

logger = logging.getLogger(__name__)


class HistoryMessage(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    """Request body for the chat endpoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str = Field(min_length=1)
    agent_id: str | None = None
    conversation_history: list[HistoryMessage] = Field(default_factory=list)
    stream: bool = False


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    connected: bool


def create_router(engine: Engine) -> APIRouter:
    """Create the API router bound to one engine.

    Args:
        engine: Engine instance shared by all routes

    Returns:
        Configured API router
    """
    router = APIRouter()

    @router.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="healthy", version=__version__, connected=engine.correlator.connected
        )

    @router.websocket("/connect")
    async def executor_socket(websocket: WebSocket) -> None:
        """Remote executor connection; the newest connection wins."""
        await websocket.accept()
        await engine.correlator.attach(websocket)

        try:
            while True:
                data = await websocket.receive_text()
                await engine.correlator.handle_message(data, websocket)
        except WebSocketDisconnect:
            logger.info("Executor websocket closed")
        finally:
            await engine.correlator.detach(websocket)

    @router.websocket("/ws/events")
    async def event_socket(websocket: WebSocket) -> None:
        """Stream lifecycle events to an observer, starting from when it joins."""
        subscription = engine.emitter.subscribe()

        async def pump() -> None:
            async for event in subscription:
                await websocket.send_json(event.to_wire())

        sender = None
        try:
            await websocket.accept()
            sender = asyncio.create_task(pump())
            # Inbound frames are ignored; receiving only detects the disconnect
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.debug("Event observer disconnected")
        finally:
            subscription.close()
            if sender is not None:
                sender.cancel()

    @router.post("/api/chat")
    async def chat(request: ChatRequest) -> Any:
        """Run one agent invocation.

        Returns the finalized execution log, or an SSE stream of lifecycle
        events followed by a ``complete`` event carrying the log when
        ``stream`` is set.
        """
        agent = engine.get_agent(request.agent_id)
        if agent is None:
            raise HTTPException(status_code=404, detail=f"Agent not found: {request.agent_id}")

        history = [Message(role=m.role, content=m.content) for m in request.conversation_history]
        loop = engine.create_loop(agent, request.message, history)

        if not request.stream:
            log = await loop.run()
            return {"agentName": agent.name, **log.to_dict()}

        async def event_generator() -> Any:
            subscription = engine.emitter.subscribe()
            task = asyncio.create_task(loop.run())
            task.add_done_callback(lambda _: subscription.close())
            try:
                async for event in subscription:
                    yield {"event": event.type, "data": json.dumps(event.to_wire())}
                log = await task
                yield {
                    "event": "complete",
                    "data": json.dumps({"agentName": agent.name, **log.to_dict()}, default=str),
                }
            except Exception as e:
                logger.exception("Streaming chat failed")
                yield {"event": "error", "data": json.dumps({"error": str(e)})}
            finally:
                subscription.close()
                if not task.done():
                    loop.stop()

        return EventSourceResponse(event_generator())

    @router.post("/api/command")
    async def command(body: dict[str, Any]) -> Any:
        """Send a raw command to the executor and return its reply."""
        if not isinstance(body.get("type"), str):
            raise HTTPException(status_code=400, detail="Command must include a string 'type'")
        try:
            return await engine.correlator.send(body)
        except ExecutorUnavailableError as e:
            raise HTTPException(status_code=503, detail=str(e)) from e
        except CommandTimeoutError as e:
            raise HTTPException(status_code=504, detail=str(e)) from e
        except ExecutorDisconnectedError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e

    @router.get("/api/status")
    async def status() -> dict[str, Any]:
        return engine.correlator.status()

    @router.get("/api/tools")
    async def tools() -> dict[str, Any]:
        return {"tools": [tool.to_dict() for tool in engine.tools.all_tools()]}

    @router.get("/api/agents")
    async def agents() -> dict[str, Any]:
        return {
            "agents": [a.model_dump(mode="json", by_alias=True) for a in engine.agents.list_agents()]
        }

    @router.get("/api/agents/{agent_id}")
    async def agent_detail(agent_id: str) -> dict[str, Any]:
        agent = engine.agents.get(agent_id)
        if agent is None:
            raise HTTPException(status_code=404, detail=f"Agent not found: {agent_id}")
        return {"agent": agent.model_dump(mode="json", by_alias=True)}

    return router
