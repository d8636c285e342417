"""Conduit - agent reasoning and remote execution engine.

Conduit lets a language model drive a remote executor (a separate process
with privileged local capabilities such as mouse and keyboard control) by
iterating thought, action and observation until the task is done.

Key modules:

- :mod:`conduit.agent` - ReAct loop, tool dispatch, delegation and event stream
- :mod:`conduit.executor` - Request/response correlation with the remote executor
- :mod:`conduit.tools` - Tool catalog, argument validation and built-in tools
- :mod:`conduit.llm` - Model provider clients (OpenAI-compatible, Workers AI)
- :mod:`conduit.server` - FastAPI app exposing chat, status and WebSocket endpoints
"""

__version__ = "0.2.0"
