"""Request/response correlation over the executor connection."""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from pydantic import ValidationError

from conduit.errors import CommandTimeoutError, ExecutorDisconnectedError, ExecutorUnavailableError
from conduit.executor.protocol import Handshake, HandshakeAck, MessageKind, classify_message
from conduit.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class ExecutorConnection(Protocol):
    """Minimal connection interface (satisfied by a FastAPI ``WebSocket``)."""

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None: ...


@dataclass
class ExecutorSession:
    """The currently attached executor."""

    connection: ExecutorConnection
    client_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    connected_at: float = field(default_factory=time.time)
    client_name: str | None = None
    client_version: str | None = None
    keepalive: asyncio.Task | None = field(default=None, repr=False)


@dataclass
class PendingCommand:
    """A command awaiting its reply."""

    command_id: str
    future: asyncio.Future
    started_at: float = field(default_factory=time.monotonic)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class CommandCorrelator:
    """Pairs outbound commands with inbound replies over one executor connection.

    Each :meth:`send` registers a :class:`PendingCommand` under a fresh id and
    waits for the first of three outcomes: a reply carrying the same
    ``commandId``, the deadline, or loss of the connection. Every outcome
    removes the entry with a single ``dict.pop``, so a command resolves
    exactly once and late replies are dropped.

    Many invocations may call :meth:`send` concurrently; they share the
    connection and are told apart only by their ids.
    """

    def __init__(
        self,
        registry: ToolRegistry | None = None,
        command_timeout: float = 30.0,
        server_name: str = "conduit",
        ping_interval: float | None = None,
    ) -> None:
        """Initialize the correlator.

        Args:
            registry: Tool registry whose remote catalog follows the executor's handshake
            command_timeout: Default seconds to wait for a reply
            server_name: Name reported in the handshake acknowledgment
            ping_interval: Seconds between keep-alive pings (None disables them)
        """
        self.registry = registry
        self.command_timeout = command_timeout
        self.server_name = server_name
        self.ping_interval = ping_interval
        self._session: ExecutorSession | None = None
        self._pending: dict[str, PendingCommand] = {}
        self._counter = itertools.count()

    @property
    def connected(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> ExecutorSession | None:
        return self._session

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def attach(self, connection: ExecutorConnection) -> ExecutorSession:
        """Make ``connection`` the active executor connection.

        A previously attached connection is superseded: its pending commands
        fail immediately, its tool catalog is dropped and it is closed. The
        new executor's tools become available with its handshake.
        """
        previous = self._session
        session = ExecutorSession(connection=connection)
        self._session = session
        logger.info("Executor connected: %s", session.client_id)

        if previous is not None:
            logger.info("Executor %s superseded by %s", previous.client_id, session.client_id)
            self._stop_keepalive(previous)
            if self.registry is not None:
                self.registry.clear_remote()
            self._fail_pending(ExecutorDisconnectedError("Superseded by a new executor connection"))
            with contextlib.suppress(Exception):
                await previous.connection.close(code=1000, reason="New desktop connected")

        if self.ping_interval:
            session.keepalive = asyncio.create_task(self._keepalive(session))

        return session

    async def _keepalive(self, session: ExecutorSession) -> None:
        while self._session is session:
            await asyncio.sleep(self.ping_interval)
            try:
                await session.connection.send_text(
                    json.dumps({"type": "ping", "timestamp": _epoch_ms()})
                )
            except Exception as e:
                logger.warning("Keep-alive ping to %s failed: %s", session.client_id, e)
                return

    @staticmethod
    def _stop_keepalive(session: ExecutorSession) -> None:
        if session.keepalive is not None and not session.keepalive.done():
            session.keepalive.cancel()
        session.keepalive = None

    async def detach(self, connection: ExecutorConnection) -> None:
        """Handle the close of ``connection``.

        Closing a connection that was already superseded is a no-op.
        """
        session = self._session
        if session is None or session.connection is not connection:
            return

        self._session = None
        self._stop_keepalive(session)
        logger.info("Executor disconnected: %s", session.client_id)

        if self.registry is not None:
            self.registry.clear_remote()
            logger.info("Remote tool catalog cleared")

        self._fail_pending(ExecutorDisconnectedError("Client disconnected"))

    def _fail_pending(self, error: Exception) -> None:
        pending, self._pending = self._pending, {}
        for command in pending.values():
            if not command.future.done():
                command.future.set_exception(error)
        if pending:
            logger.warning("Failed %d pending commands: %s", len(pending), error)

    async def handle_message(
        self, raw: str | bytes | dict[str, Any], connection: ExecutorConnection | None = None
    ) -> None:
        """Process one inbound message from the executor.

        Args:
            raw: Message text or already-decoded JSON object
            connection: Connection the message arrived on (defaults to the active one)
        """
        if isinstance(raw, (str, bytes)):
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Ignoring non-JSON executor message")
                return
        else:
            data = raw

        target = connection
        if target is None and self._session is not None:
            target = self._session.connection

        kind = classify_message(data)

        if kind is MessageKind.HANDSHAKE:
            if self._session is None or (
                connection is not None and self._session.connection is not connection
            ):
                logger.warning("Ignoring handshake from an inactive executor connection")
                return
            await self._handle_handshake(data, target)
        elif kind is MessageKind.PING:
            if target is not None:
                await target.send_text(json.dumps({"type": "pong", "timestamp": _epoch_ms()}))
        elif kind is MessageKind.PONG:
            logger.debug("Keep-alive pong from executor")
        elif kind is MessageKind.REPLY:
            self._resolve(data)
        else:
            logger.debug("Ignoring unsolicited executor message of type %s", data.get("type"))

    async def _handle_handshake(
        self, data: dict[str, Any], connection: ExecutorConnection | None
    ) -> None:
        error = None
        registered = 0
        try:
            handshake = Handshake.model_validate(data)
        except ValidationError as e:
            logger.error("Invalid handshake from executor: %s", e)
            handshake = None
            error = "Invalid handshake"

        if handshake is not None:
            logger.info("Handshake from %s v%s", handshake.client, handshake.version)
            if self._session is not None:
                self._session.client_name = handshake.client
                self._session.client_version = handshake.version

            if self.registry is not None:
                # A handshake without tools reports an empty catalog
                try:
                    registered = self.registry.register(
                        [spec.to_definition() for spec in handshake.tools or []]
                    )
                except ValueError as e:
                    logger.error("Rejected executor tool catalog: %s", e)
                    self.registry.clear_remote()
                    error = str(e)

        ack = HandshakeAck(
            server=self.server_name,
            timestamp=_epoch_ms(),
            tools_registered=registered,
            error=error,
        )
        if connection is not None:
            await connection.send_text(ack.model_dump_json(by_alias=True, exclude_none=True))

    def _resolve(self, data: dict[str, Any]) -> None:
        command_id = data["commandId"]
        pending = self._pending.pop(command_id, None)
        if pending is None:
            logger.warning("Dropping reply for unknown or expired command %s", command_id)
            return
        if not pending.future.done():
            pending.future.set_result(data)
        logger.debug(
            "Command %s answered in %.1fms",
            command_id,
            (time.monotonic() - pending.started_at) * 1000,
        )

    def _next_command_id(self) -> str:
        return f"cmd_{next(self._counter)}_{_epoch_ms()}"

    async def send(self, command: dict[str, Any], timeout: float | None = None) -> dict[str, Any]:
        """Send a command and wait for its reply.

        Args:
            command: Command envelope (must include ``type``); ``commandId`` is added
            timeout: Seconds to wait; defaults to ``command_timeout``

        Returns:
            The decoded reply message

        Raises:
            ExecutorUnavailableError: If no executor is connected
            CommandTimeoutError: If no reply arrives before the deadline
            ExecutorDisconnectedError: If the connection drops while waiting
        """
        session = self._session
        if session is None:
            raise ExecutorUnavailableError("No client connected")

        deadline = self.command_timeout if timeout is None else timeout
        command_id = self._next_command_id()
        future: asyncio.Future = asyncio.get_running_loop().create_future()

        # Register before transmitting so an immediate reply always finds its entry
        self._pending[command_id] = PendingCommand(command_id=command_id, future=future)

        try:
            try:
                await session.connection.send_text(json.dumps({**command, "commandId": command_id}))
            except Exception as e:
                raise ExecutorDisconnectedError(f"Failed to send command: {e}") from e

            try:
                return await asyncio.wait_for(future, timeout=deadline)
            except asyncio.TimeoutError:
                logger.warning(
                    "Command %s (%s) timed out after %gs", command_id, command.get("type"), deadline
                )
                raise CommandTimeoutError(command_id, deadline) from None
        finally:
            self._pending.pop(command_id, None)

    def status(self) -> dict[str, Any]:
        """Connection status snapshot."""
        sessions = []
        if self._session is not None:
            s = self._session
            sessions.append(
                {
                    "clientId": s.client_id,
                    "clientName": s.client_name,
                    "clientVersion": s.client_version,
                    "connectedAt": datetime.fromtimestamp(s.connected_at, tz=timezone.utc).isoformat(),
                    "uptime": int((time.time() - s.connected_at) * 1000),
                }
            )
        return {
            "connected": self.connected,
            "sessions": sessions,
            "toolCount": self.registry.remote_count if self.registry is not None else 0,
            "pendingCommands": self.pending_count,
        }
