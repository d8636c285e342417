"""Tool catalog with atomic remote-catalog replacement and argument validation."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from typing import Any

from conduit.tools.base import LocalTool, ToolDefinition, ToolParameter, ValidationResult

logger = logging.getLogger(__name__)


def _coerce_number(value: str) -> int | float | None:
    text = value.strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _matches_type(value: Any, expected: str) -> bool:
    # bool is an int subclass; never let True pass as a number
    if expected == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if expected == "string":
        return isinstance(value, str)
    if expected == "boolean":
        return isinstance(value, bool)
    if expected == "array":
        return isinstance(value, list)
    if expected == "object":
        return isinstance(value, dict)
    return True


class ToolRegistry:
    """Catalog of tools available to agents.

    The catalog has two portions. Local tools are engine-internal and carry an
    in-process handler; they are fixed at construction. Remote tools are the
    definitions reported by the connected executor and are replaced as a whole
    by :meth:`register`. A local id always shadows a remote one.
    """

    def __init__(self, local_tools: Iterable[LocalTool] | None = None) -> None:
        self._local: dict[str, LocalTool] = {}
        self._remote: dict[str, ToolDefinition] = {}

        for local_tool in local_tools or []:
            self.add_local(local_tool)

    def add_local(self, local_tool: LocalTool) -> None:
        """Add an engine-internal tool.

        Raises:
            ValueError: If a local tool with the same id already exists
        """
        if local_tool.id in self._local:
            raise ValueError(f"Tool '{local_tool.id}' already registered")
        self._local[local_tool.id] = local_tool

    def register(self, catalog: Iterable[ToolDefinition]) -> int:
        """Replace the remote portion of the catalog.

        The new catalog is built aside and swapped in with a single assignment,
        so lookups never observe a half-populated catalog. Entries from the
        previous catalog that are absent from the new one stop validating.

        Args:
            catalog: Tool definitions reported by the executor

        Returns:
            Number of remote tools now registered

        Raises:
            ValueError: If the catalog contains duplicate ids
        """
        fresh: dict[str, ToolDefinition] = {}
        for definition in catalog:
            if definition.id in fresh:
                raise ValueError(f"Duplicate tool id in catalog: {definition.id}")
            if definition.id in self._local:
                logger.warning(
                    "Ignoring remote tool '%s': id is reserved by a local tool", definition.id
                )
                continue
            fresh[definition.id] = definition

        self._remote = fresh
        logger.info("Registered %d remote tools", len(fresh))
        return len(fresh)

    def clear_remote(self) -> None:
        """Drop every remote tool (executor disconnected)."""
        self._remote = {}

    def lookup(self, tool_id: str) -> ToolDefinition | None:
        """Get a tool definition by id, or None if unknown."""
        local_tool = self._local.get(tool_id)
        if local_tool is not None:
            return local_tool.definition
        return self._remote.get(tool_id)

    def get_local(self, tool_id: str) -> LocalTool | None:
        return self._local.get(tool_id)

    def is_local(self, tool_id: str) -> bool:
        """Whether the tool runs in this process rather than on the executor."""
        return tool_id in self._local

    @property
    def remote_count(self) -> int:
        return len(self._remote)

    def all_tools(self) -> list[ToolDefinition]:
        """Every tool definition, local tools first."""
        return [t.definition for t in self._local.values()] + list(self._remote.values())

    def normalize_arguments(self, tool_id: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Coerce loosely serialized arguments to their declared types.

        Numeric strings become numbers for ``number``/``integer`` parameters,
        ``"true"``/``"false"`` become booleans, and blank strings passed for
        optional parameters are dropped. Unknown tools and undeclared
        arguments pass through untouched.

        Args:
            tool_id: Tool the arguments belong to
            arguments: Raw arguments from the model

        Returns:
            A new dictionary with normalized values
        """
        normalized = dict(arguments)
        definition = self.lookup(tool_id)
        if definition is None:
            return normalized

        for param in definition.parameters:
            if param.name not in normalized:
                continue
            value = normalized[param.name]
            if not isinstance(value, str):
                continue

            if not value.strip() and not param.required:
                del normalized[param.name]
                continue

            if param.type in ("number", "integer"):
                number = _coerce_number(value)
                if number is not None and (param.type == "number" or isinstance(number, int)):
                    normalized[param.name] = number
            elif param.type == "boolean":
                lowered = value.strip().lower()
                if lowered == "true":
                    normalized[param.name] = True
                elif lowered == "false":
                    normalized[param.name] = False

        return normalized

    def validate(self, tool_id: str, arguments: dict[str, Any]) -> ValidationResult:
        """Validate arguments against a tool's parameter schema.

        An unknown tool id is reported as a validation error rather than
        raised, since the executor's catalog can change between requests.

        Args:
            tool_id: Tool to validate against
            arguments: Already-normalized arguments

        Returns:
            ValidationResult with every problem found
        """
        definition = self.lookup(tool_id)
        if definition is None:
            return ValidationResult(valid=False, errors=[f"Tool not found: {tool_id}"])

        errors = []
        for param in definition.parameters:
            if param.name not in arguments:
                if param.required:
                    errors.append(f"Missing required parameter: {param.name}")
                continue
            errors.extend(self._check_parameter(param, arguments[param.name]))

        return ValidationResult(valid=not errors, errors=errors)

    @staticmethod
    def _check_parameter(param: ToolParameter, value: Any) -> list[str]:
        errors = []
        if not _matches_type(value, param.type):
            errors.append(f"Parameter {param.name} must be a {param.type}")
        if param.enum and value not in param.enum:
            allowed = ", ".join(str(v) for v in param.enum)
            errors.append(f"Parameter {param.name} must be one of: {allowed}")
        return errors

    def schemas_for(self, tool_ids: Iterable[str]) -> list[ToolDefinition]:
        """Definitions for the given ids, skipping ids missing from the catalog."""
        definitions = []
        for tool_id in tool_ids:
            definition = self.lookup(tool_id)
            if definition is not None:
                definitions.append(definition)
        return definitions

    def describe(self, tool_ids: Iterable[str]) -> str:
        """Human-readable tool list for system prompt interpolation."""
        return "\n".join(
            f"- {d.name} ({d.id}): {d.description}" for d in self.schemas_for(tool_ids)
        )
