"""Turn model output into a thought and tool call requests.

Structured tool calls are preferred. Providers without native tool calling
can still act by writing ``Action: tool_name(args)`` in their text; both
paths yield the same :class:`ToolCallRequest`, so the loop never needs to
know which one was used.
"""

from __future__ import annotations

import json
import re
from typing import Any

from conduit.llm.client import CompletionResponse
from conduit.tools.base import ToolCallRequest

_THOUGHT_RE = re.compile(r"Thought:\s*(.+?)(?:\n|Action:|$)", re.IGNORECASE | re.DOTALL)
_ACTION_RE = re.compile(r"Action:\s*(\w+)\((.*)\)", re.IGNORECASE)
_KWARG_RE = re.compile(r"(\w+)\s*=\s*(\"[^\"]*\"|'[^']*'|[^,]+)")


def extract_thought(response: CompletionResponse) -> str:
    """Extract the model's reasoning for this step.

    Args:
        response: Completion from the provider

    Returns:
        Thought text (never empty)
    """
    text = (response.content or "").strip()

    if response.tool_calls:
        if text:
            return text
        first = response.tool_calls[0]
        return f"I will use the {first.name} tool with parameters: {json.dumps(first.arguments)}"

    if text:
        match = _THOUGHT_RE.search(text)
        if match and match.group(1).strip():
            return match.group(1).strip()
        return text

    return "Processing..."


def _parse_scalar(raw: str) -> Any:
    raw = raw.strip()
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in "'\"":
        return raw[1:-1]
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def parse_action_arguments(raw: str) -> dict[str, Any] | None:
    """Parse the argument list of a textual ``Action: tool(...)``.

    Accepts either JSON members (``"x": 10, "y": 20``), a full JSON object,
    or keyword style (``x=10, y="a b"``).

    Returns:
        Argument mapping, or None if nothing parseable was found
    """
    raw = raw.strip()
    if not raw:
        return {}

    for candidate in (raw, "{" + raw + "}"):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    pairs = _KWARG_RE.findall(raw)
    if not pairs:
        return None
    return {key: _parse_scalar(value) for key, value in pairs}


def parse_tool_calls(response: CompletionResponse) -> list[ToolCallRequest]:
    """Collect tool call requests from a completion.

    Args:
        response: Completion from the provider

    Returns:
        Requests in the order the model proposed them (possibly empty)
    """
    if response.tool_calls:
        return [
            ToolCallRequest(tool_id=call.name, arguments=dict(call.arguments or {}))
            for call in response.tool_calls
        ]

    match = _ACTION_RE.search(response.content or "")
    if match is None:
        return []

    arguments = parse_action_arguments(match.group(2))
    if arguments is None:
        return []
    return [ToolCallRequest(tool_id=match.group(1), arguments=arguments)]
