"""ASGI entry point for running the parley server via uvicorn CLI.

    python -m uvicorn parley.server.asgi:app --host ... --port ...
"""

from parley.config.loader import load_config
from parley.server.app import create_app

config = load_config()
app = create_app(config)
