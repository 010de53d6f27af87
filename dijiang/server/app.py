"""FastAPI application factory for Dijiang.

Creates the FastAPI app with lifespan management for the
:class:`SessionController`. ``create_app()`` is the single entry point used
by the CLI and ``uvicorn`` alike.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from dijiang import __version__
from dijiang.server.routes import router
from dijiang.session.controller import SessionController

logger = logging.getLogger(__name__)


def create_app(controller: SessionController | None = None) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    The returned app has:
    * ``app.state.controller`` — the :class:`SessionController` for this process
    * the ``/health`` and ``/session/*`` routes
    * lifespan hooks starting and stopping the controller
    """
    session = controller or SessionController()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Dijiang server starting up")
        await session.start()
        try:
            yield
        finally:
            logger.info("Dijiang server shutting down")
            await session.stop()

    app = FastAPI(title="Dijiang", version=__version__, lifespan=lifespan)
    app.state.controller = session
    app.include_router(router)

    logger.info("FastAPI app created")
    return app
