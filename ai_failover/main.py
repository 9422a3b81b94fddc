"""AI Failover Service - Backend API"""
import asyncio
import contextlib
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routes import VERSION
from .api.routes import router as api_router
from .config import API_HOST, API_PORT
from .orchestrator import FailoverOrchestrator
from .services.provider_service import build_orchestrator

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger()


def create_app(orchestrator: FailoverOrchestrator | None = None) -> FastAPI:
    """Create the API app.

    Args:
        orchestrator: Pre-built orchestrator; wired from the environment
            at startup when omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifecycle - provider wiring and health monitoring."""
        logger.info("server_starting", version=VERSION)

        app.state.orchestrator = orchestrator or build_orchestrator()
        providers = [p.value for p in app.state.orchestrator.config.provider_order]
        logger.info("orchestrator_initialized", providers=providers)

        monitor = asyncio.create_task(app.state.orchestrator.health.monitor())

        yield

        # Cleanup
        monitor.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await monitor
        logger.info("server_stopping")

    app = FastAPI(
        title="AI Failover Service",
        description="Image analysis with automatic failover across AI vendors",
        version=VERSION,
        lifespan=lifespan,
    )

    # CORS for local frontends
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn on API_HOST:API_PORT."""
    import uvicorn

    uvicorn.run(app, host=API_HOST, port=API_PORT)
