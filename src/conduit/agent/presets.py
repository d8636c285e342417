"""Built-in agent definitions."""

from __future__ import annotations

from conduit.agent.definition import AgentDefinition, ToolReference
from conduit.agent.prompts import PROMPT_TEMPLATES, interpolate_prompt

ROOT_AGENT_ID = "orchestrator-agent"

_SPECIALISTS = {
    "desktop-automation-agent": "Mouse/keyboard control, clicking, typing, GUI automation",
    "web-research-agent": "Browsing, searching, information gathering",
    "code-assistant-agent": "Code analysis, writing, debugging",
    "conversational-agent": "User communication, clarifications",
}


def _tools(*tool_ids: str) -> list[ToolReference]:
    return [ToolReference(tool_id=tool_id) for tool_id in tool_ids]


def default_agents() -> list[AgentDefinition]:
    """Return fresh copies of the built-in agents."""
    agent_list = "\n".join(f"- {agent_id}: {desc}" for agent_id, desc in _SPECIALISTS.items())

    return [
        AgentDefinition(
            id=ROOT_AGENT_ID,
            name="Orchestrator",
            purpose="Planning complex tasks and coordinating specialized agents",
            system_prompt=interpolate_prompt(PROMPT_TEMPLATES["orchestrator"], {"agents": agent_list}),
            tools=_tools("delegate_to_agent"),
            max_iterations=10,
            delegates=list(_SPECIALISTS),
        ),
        AgentDefinition(
            id="conversational-agent",
            name="Conversational Agent",
            purpose="Friendly conversation and high-level progress updates",
            system_prompt=PROMPT_TEMPLATES["conversational"],
            tools=_tools("take_screenshot"),
            max_iterations=3,
        ),
        AgentDefinition(
            id="web-research-agent",
            name="Web Research Agent",
            purpose="Research and information gathering using real web search",
            system_prompt=PROMPT_TEMPLATES["web-research"],
            tools=_tools("web_search", "fetch_url"),
            max_iterations=8,
        ),
        AgentDefinition(
            id="desktop-automation-agent",
            name="Desktop Automation Agent",
            purpose="Precise desktop task automation with mouse and keyboard control",
            system_prompt=PROMPT_TEMPLATES["precise-executor"],
            tools=_tools("mouse_move", "mouse_click", "keyboard_input", "get_mouse_position"),
            max_iterations=3,
        ),
        AgentDefinition(
            id="code-assistant-agent",
            name="Code Assistant Agent",
            purpose="Code analysis, generation, and debugging assistance",
            system_prompt=PROMPT_TEMPLATES["cot-standard"],
            tools=_tools("keyboard_input", "take_screenshot", "mouse_move", "mouse_click"),
            max_iterations=4,
        ),
        AgentDefinition(
            id="test-debug-agent",
            name="Test & Debug Agent",
            purpose="Testing error handling and debugging tool failures",
            system_prompt=PROMPT_TEMPLATES["test-debugger"],
            tools=_tools(
                "mouse_move",
                "mouse_click",
                "keyboard_input",
                "keyboard_command",
                "get_mouse_position",
                "take_screenshot",
                "mouse_scroll",
            ),
            max_iterations=3,
        ),
    ]
