"""Factory function for creating LLM clients from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from conduit.llm.openai_compat import OpenAICompatibleClient
from conduit.llm.workers_ai import WorkersAIClient

if TYPE_CHECKING:
    from conduit.config.schema import ConduitConfig
    from conduit.llm.client import LLMClient


def create_llm_client(config: ConduitConfig) -> LLMClient:
    """Create an LLM client based on configuration.

    Args:
        config: Conduit configuration.

    Returns:
        An LLM client for the configured backend.

    Raises:
        ValueError: If the backend is not recognised or misconfigured.
    """
    llm = config.llm

    if llm.backend == "openai":
        return OpenAICompatibleClient(
            model=llm.model,
            base_url=llm.base_url,
            api_key=llm.api_key,
            timeout=llm.timeout,
            temperature=llm.temperature,
        )
    elif llm.backend == "workers_ai":
        if not llm.account_id or not llm.api_key:
            raise ValueError("workers_ai backend requires llm.account_id and llm.api_key")
        return WorkersAIClient(
            account_id=llm.account_id,
            api_token=llm.api_key,
            model=llm.model,
            base_url=llm.base_url,
            timeout=llm.timeout,
            temperature=llm.temperature,
        )
    else:
        raise ValueError(f"Unknown LLM backend: {llm.backend}")
