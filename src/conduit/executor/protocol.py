"""Wire envelopes exchanged with the remote executor.

Commands (engine -> executor)::

    {"type": "<tool_id>", ...tool arguments, "commandId": "cmd_3_1718000000000"}

Replies (executor -> engine) echo ``commandId`` and are either
``{"type": "success", "message": ...}``, ``{"type": "error", "error": ...}``
or a data-bearing ``{"type": "<result_kind>", ...}``. Handshake and
keep-alive messages never carry a ``commandId``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from conduit.tools.base import ParameterType, ToolDefinition, ToolParameter


class MessageKind(str, Enum):
    """Classification of an inbound executor message."""

    HANDSHAKE = "handshake"
    PING = "ping"
    PONG = "pong"
    REPLY = "reply"
    UNSOLICITED = "unsolicited"


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RemoteToolParameter(_WireModel):
    """Parameter spec as reported by the executor."""

    name: str
    type: ParameterType = "string"
    description: str = ""
    required: bool = False
    enum: list[Any] | None = None
    default: Any = None


class RemoteToolSpec(_WireModel):
    """Tool definition as reported by the executor."""

    id: str
    name: str | None = None
    description: str = ""
    category: str = "utility"
    parameters: list[RemoteToolParameter] = Field(default_factory=list)
    returns_observation: bool = True

    def to_definition(self) -> ToolDefinition:
        """Convert to a catalog entry."""
        return ToolDefinition(
            id=self.id,
            name=self.name or self.id,
            description=self.description or f"Executor tool: {self.id}",
            category=self.category,
            parameters=[
                ToolParameter(
                    name=p.name,
                    type=p.type,
                    description=p.description,
                    required=p.required,
                    enum=p.enum,
                    default=p.default,
                )
                for p in self.parameters
            ],
            returns_observation=self.returns_observation,
        )


class Handshake(_WireModel):
    """First message sent by the executor after connecting."""

    type: Literal["handshake"] = "handshake"
    client: str = "unknown"
    version: str = "unknown"
    tools: list[RemoteToolSpec] | None = None


class HandshakeAck(_WireModel):
    """Engine's answer to a handshake."""

    type: Literal["handshake_ack"] = "handshake_ack"
    server: str
    timestamp: int
    tools_registered: int = 0
    error: str | None = None


def classify_message(data: Any) -> MessageKind:
    """Decide how an inbound message must be handled.

    Protocol messages are recognised by ``type`` before any correlation id
    matching is attempted, so a handshake or ping is never mistaken for an
    unmatched reply.

    Args:
        data: Decoded JSON message

    Returns:
        The message kind
    """
    if not isinstance(data, dict):
        return MessageKind.UNSOLICITED

    msg_type = data.get("type")
    if msg_type == "handshake":
        return MessageKind.HANDSHAKE
    if msg_type == "ping":
        return MessageKind.PING
    if msg_type == "pong":
        return MessageKind.PONG
    if isinstance(data.get("commandId"), str):
        return MessageKind.REPLY
    return MessageKind.UNSOLICITED
