"""Model provider clients."""

from .client import CompletionResponse, LLMClient, Message, ToolCall
from .factory import create_llm_client
from .openai_compat import OpenAICompatibleClient
from .workers_ai import WorkersAIClient

__all__ = [
    "CompletionResponse",
    "LLMClient",
    "Message",
    "OpenAICompatibleClient",
    "ToolCall",
    "WorkersAIClient",
    "create_llm_client",
]
