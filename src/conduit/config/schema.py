"""Pydantic models for conduit.yaml configuration."""

from typing import Literal

from pydantic import BaseModel, Field

from conduit.agent.definition import AgentDefinition

DEFAULT_MODEL = "@cf/meta/llama-3.3-70b-instruct-fp8-fast"

DEFAULT_COMPLETION_PHRASES = [
    "done",
    "complete",
    "finished",
    "task completed",
    "no more actions",
]


class LLMConfig(BaseModel):
    """Model provider configuration."""

    backend: Literal["openai", "workers_ai"] = Field(
        default="workers_ai",
        description="Provider backend: any OpenAI-compatible server or Cloudflare Workers AI",
    )
    model: str = Field(default=DEFAULT_MODEL, description="Default model identifier")
    base_url: str = Field(
        default="https://api.cloudflare.com/client/v4",
        description="Provider base URL (include /v1 for OpenAI-compatible servers)",
    )
    api_key: str | None = Field(default=None, description="API key or bearer token")
    account_id: str | None = Field(default=None, description="Cloudflare account id (workers_ai)")
    timeout: int = Field(default=120, description="Request timeout in seconds", ge=1)
    temperature: float = Field(default=0.7, description="Sampling temperature", ge=0.0, le=2.0)


class AgentLoopConfig(BaseModel):
    """ReAct loop policy."""

    max_iterations: int = Field(
        default=5,
        description="Iteration limit for configured agents that do not set maxIterations",
        ge=1,
        le=20,
    )
    stop_on_error: bool = Field(
        default=False,
        description="Abort the whole loop on the first failed or invalid tool call",
    )
    retry_on_unavailable: bool = Field(
        default=False,
        description="Treat a missing executor connection as a recoverable observation",
    )
    verbose: bool = Field(default=False, description="Log every model response and step at INFO")
    completion_phrases: list[str] = Field(
        default_factory=lambda: list(DEFAULT_COMPLETION_PHRASES),
        description="Thought phrases that end the loop after a successful tool call",
    )
    default_agent_id: str = Field(
        default="orchestrator-agent",
        description="Agent used by /api/chat when the request names none",
    )


class DelegationConfig(BaseModel):
    """Agent-to-agent delegation policy."""

    enabled: bool = Field(default=True, description="Expose the delegate_to_agent tool")
    root_agent_id: str = Field(
        default="orchestrator-agent",
        description="Agent that can never be a delegation target",
    )
    max_depth: int = Field(default=1, description="Maximum nested delegation depth", ge=1, le=5)
    max_iterations: int = Field(
        default=5,
        description="Upper bound on a delegated agent's iteration count",
        ge=1,
        le=20,
    )


class ExecutorConfig(BaseModel):
    """Remote executor connection settings."""

    command_timeout: float = Field(
        default=30.0, description="Seconds to wait for a command reply", gt=0
    )
    server_name: str = Field(default="conduit", description="Name sent in the handshake ack")
    ping_interval: float | None = Field(
        default=None,
        description="Seconds between keep-alive pings to the executor (None = off)",
        gt=0,
    )


class ServerConfig(BaseModel):
    """API server configuration."""

    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=8787, description="Server port", ge=1, le=65535)
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8787"],
        description="Allowed CORS origins (use ['*'] for development only)",
    )


class ConduitConfig(BaseModel):
    """Root configuration model."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    agent: AgentLoopConfig = Field(default_factory=AgentLoopConfig)
    delegation: DelegationConfig = Field(default_factory=DelegationConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    agents: list[AgentDefinition] = Field(
        default_factory=list,
        description="Additional agent definitions; entries with a built-in id replace the preset",
    )
