"""WikiGaiaLab workflow API.

Application factory: builds the FastAPI app from :class:`Settings`, wires
CORS, compression and the security middleware, and mounts the routers.
The database engine is opened by the lifespan and disposed on shutdown.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from app.config import Settings
from app.database import create_engine, create_session_factory
from app.routers import admin_workflow, development_queue, health, workflow
from app.security import setup_security

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# Lifecycle management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database engine on startup and dispose it on shutdown."""
    engine = None
    if app.state.session_factory is None:
        engine = create_engine(app.state.settings)
        if engine is not None:
            app.state.session_factory = create_session_factory(engine)
    logger.info("WikiGaiaLab workflow API started")
    yield
    if engine is not None:
        await engine.dispose()
        app.state.session_factory = None
    logger.info("WikiGaiaLab workflow API shutdown complete")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build a configured application instance."""
    settings = settings or Settings.from_env()

    app = FastAPI(
        title="WikiGaiaLab Workflow API",
        description="Vote-milestone problem workflow and development queue",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session_factory = None

    # =========================================================================
    # CORS Configuration
    # =========================================================================
    logger.info(
        "CORS environment=%s allowed_origins=%s",
        settings.environment,
        settings.allowed_origins,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Requested-With"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)

    # Must run after CORS middleware is added
    setup_security(app, settings)

    app.include_router(health.router)
    app.include_router(workflow.router)
    app.include_router(development_queue.router)
    app.include_router(admin_workflow.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
