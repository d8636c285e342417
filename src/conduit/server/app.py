"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from conduit import __version__
from conduit.agent.engine import Engine
from conduit.config.schema import ConduitConfig
from conduit.llm.client import LLMClient
from conduit.llm.factory import create_llm_client
from conduit.server.routes import create_router


def create_app(
    config: ConduitConfig,
    llm: LLMClient | None = None,
    engine: Engine | None = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        config: Conduit configuration
        llm: Model provider (defaults to one built from config)
        engine: Pre-built engine, mainly for tests

    Returns:
        Configured FastAPI app
    """
    if engine is None:
        engine = Engine(config, llm or create_llm_client(config))

    app = FastAPI(
        title="Conduit",
        description="ReAct agent engine driving a remote tool executor",
        version=__version__,
    )
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(create_router(engine))

    return app
