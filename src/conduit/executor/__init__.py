"""Remote executor protocol and command correlation.

The remote executor is a separate process that performs tool side effects
(mouse, keyboard, screenshots) and holds one persistent WebSocket
connection to the engine. Commands travel as JSON envelopes carrying a
``commandId``; every reply echoes it so that :class:`CommandCorrelator`
can resolve exactly one pending command per reply.
"""

from conduit.executor.correlator import CommandCorrelator, ExecutorConnection
from conduit.executor.protocol import Handshake, HandshakeAck, MessageKind, classify_message

__all__ = [
    "CommandCorrelator",
    "ExecutorConnection",
    "Handshake",
    "HandshakeAck",
    "MessageKind",
    "classify_message",
]
