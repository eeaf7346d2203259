"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from parley import __version__
from parley.chat.engine import ChatEngine, create_engine
from parley.config.schema import ParleyConfig
from parley.errors import PersistenceError
from parley.server.routes import create_router

logger = logging.getLogger(__name__)


def create_app(config: ParleyConfig, engine: ChatEngine | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Saved conversations are loaded on startup and written back on shutdown
    when persistence is enabled.

    Args:
        config: Parley configuration
        engine: Chat engine; built from configuration when omitted

    Returns:
        Configured FastAPI app
    """
    if engine is None:
        engine = create_engine(config)
    service = engine.service

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        persistence = service.persistence
        if persistence is not None:
            try:
                count = persistence.on_start(service)
                logger.info("Loaded %d saved conversations", count)
            except PersistenceError as e:
                logger.error("Failed to start persistence: %s", e)
        yield
        if persistence is not None:
            try:
                persistence.on_shutdown(service)
            except PersistenceError as e:
                logger.error("Failed to save conversations on shutdown: %s", e)

    app = FastAPI(
        title="Parley",
        description="Streaming conversation engine for LLM playgrounds",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(create_router(config, engine))
    return app
