"""Base types for the tool system."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Literal

ParameterType = Literal["string", "number", "integer", "boolean", "array", "object"]


@dataclass(frozen=True)
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    type: ParameterType
    description: str = ""
    required: bool = False
    enum: list[Any] | None = None
    default: Any = None


@dataclass(frozen=True)
class ToolDefinition:
    """A callable tool as exposed to the model."""

    id: str
    name: str
    description: str
    parameters: list[ToolParameter] = field(default_factory=list)
    category: str = "utility"
    returns_observation: bool = True

    def to_openai_format(self) -> dict[str, Any]:
        """Convert to OpenAI function calling format.

        Returns:
            Dictionary matching OpenAI's function schema format
        """
        return {
            "type": "function",
            "function": self.to_function_schema(),
        }

    def to_function_schema(self) -> dict[str, Any]:
        """Flat ``{name, description, parameters}`` schema used by Workers AI."""
        properties: dict[str, Any] = {}
        required = []

        for param in self.parameters:
            param_schema: dict[str, Any] = {
                "type": param.type,
                "description": param.description,
            }
            if param.enum:
                param_schema["enum"] = list(param.enum)

            properties[param.name] = param_schema

            if param.required:
                required.append(param.name)

        return {
            "name": self.id,
            "description": self.description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        }

    def to_dict(self) -> dict[str, Any]:
        """Wire representation, matching what executors send in their handshake."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "parameters": [
                {
                    "name": p.name,
                    "type": p.type,
                    "description": p.description,
                    "required": p.required,
                    **({"enum": list(p.enum)} if p.enum else {}),
                    **({"default": p.default} if p.default is not None else {}),
                }
                for p in self.parameters
            ],
            "returnsObservation": self.returns_observation,
        }


@dataclass
class ToolCallRequest:
    """A tool invocation proposed by the model."""

    tool_id: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolCallResult:
    """Outcome of one tool invocation, correlated 1:1 with its request."""

    tool_id: str
    success: bool
    result: Any = None
    error: str | None = None
    execution_time: float = 0.0  # milliseconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "toolId": self.tool_id,
            "success": self.success,
            "result": self.result,
            "error": self.error,
            "executionTime": self.execution_time,
        }


@dataclass
class ValidationResult:
    """Result of validating a tool call against its schema."""

    valid: bool
    errors: list[str] = field(default_factory=list)


# Local tool handler: async function returning a JSON-serializable payload
ToolHandler = Callable[..., Awaitable[Any]]


@dataclass
class LocalTool:
    """A tool executed inside the engine process.

    ``fn`` is None for tools the dispatcher routes itself (delegation).
    """

    definition: ToolDefinition
    fn: ToolHandler | None = None

    @property
    def id(self) -> str:
        return self.definition.id

    async def execute(self, **kwargs: Any) -> Any:
        """Execute the tool with given arguments.

        Args:
            **kwargs: Tool arguments

        Returns:
            Tool result payload
        """
        if self.fn is None:
            raise RuntimeError(f"Tool '{self.id}' has no local handler")
        return await self.fn(**kwargs)
