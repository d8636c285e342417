"""Tool catalog, argument validation and built-in local tools.

A catalog is the union of engine-internal tools (executed in this process,
such as ``web_search``, ``fetch_url`` and ``delegate_to_agent``) and the
tools reported by the remote executor in its handshake. The remote portion
is replaced wholesale every time the executor reconnects.

Usage::

    from conduit.tools.registry import ToolRegistry
    from conduit.tools.web import create_web_tools

    registry = ToolRegistry(local_tools=create_web_tools())
    registry.register(remote_catalog)
    result = registry.validate("mouse_move", {"x": 10, "y": 20})
"""
