"""FastAPI server publishing endpoint status from a running engine."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from pingwatch import __version__
from pingwatch.api.routes import endpoint_router
from pingwatch.engine.engine import Engine

logger = logging.getLogger(__name__)


def create_app(engine: Engine, run_engine: bool = True) -> FastAPI:
    """Build the API app around ``engine``.

    With ``run_engine`` the app's lifespan starts the engine on startup and
    shuts it down (waiting for every endpoint loop) on exit.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if run_engine:
            logger.debug("starting engine ...")
            engine.start()
        yield
        if run_engine:
            logger.info("shutting down engine ...")
            await engine.shutdown()

    app = FastAPI(
        title="pingwatch",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.include_router(endpoint_router)
    return app
