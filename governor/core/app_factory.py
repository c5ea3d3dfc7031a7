"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build fresh instances.
"""

from __future__ import annotations

from fastapi import FastAPI

from governor.api.routes import games_router, health_router, profiles_router
from governor.core.config import settings
from governor.core.exception_handlers import setup_exception_handlers
from governor.core.logging import configure_logging
from governor.core.middleware import request_id_middleware


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Pickup Games API",
        description=(
            "Find and join pickup games. Reads are cached and de-duplicated and "
            "every action is rate limited per process before it reaches the "
            "metered document store."
        ),
        version="0.1.0",
        debug=settings.app.debug,
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(games_router, prefix="/v1")
    app.include_router(profiles_router, prefix="/v1")
    app.include_router(health_router)

    return app
