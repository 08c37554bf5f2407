"""FastAPI application factory and configuration."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from .config import get_api_settings
from .container import GatewayContainer
from .handlers import register_exception_handlers
from .middleware import GatewayRequestMiddleware
from .routers import chat_router, health_router

logger = structlog.get_logger()


def configure_logging(debug: bool = False) -> None:
    """Configure structlog for JSON output.

    Args:
        debug: Log at debug level
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if debug else logging.INFO
        ),
        cache_logger_on_first_use=True,
    )


def create_app(container: GatewayContainer | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        container: Pre-built components; when omitted they are built from
            settings at start-up and released at shutdown

    Returns:
        Configured FastAPI application
    """
    settings = get_api_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # Startup
        logger.info("starting_application")
        owned = container is None
        app.state.container = container or await GatewayContainer.from_settings()

        yield

        # Shutdown
        logger.info("shutting_down_application")
        if owned:
            await app.state.container.aclose()

    app = FastAPI(
        title=settings.title,
        description=settings.description,
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "health", "description": "Health check endpoints"},
            {"name": "chat", "description": "Chat completions and sessions"},
        ],
    )
    if container is not None:
        app.state.container = container

    app.add_middleware(GatewayRequestMiddleware)

    register_exception_handlers(app)

    # Health checks (no prefix)
    app.include_router(health_router)
    app.include_router(chat_router, prefix=settings.api_prefix)

    logger.info(
        "application_configured",
        title=settings.title,
        version=settings.version,
        debug=settings.debug,
    )
    return app


def run() -> None:
    """Serve the gateway with uvicorn."""
    configure_logging(get_api_settings().debug)
    uvicorn.run(app, host="0.0.0.0", port=8000)


# Application instance
app = create_app()
