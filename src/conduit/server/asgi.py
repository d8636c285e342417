"""ASGI entry point for running the conduit server via uvicorn CLI.

    python -m uvicorn conduit.server.asgi:app --host ... --port ...
"""

from conduit.config.loader import load_config
from conduit.server.app import create_app

config = load_config()
app = create_app(config)
