"""
FastAPI application initialization and configuration.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import health
from api.routes.v1 import analytics, candidates, interviews, jobs, notifications, sla
from api.schemas.common import ErrorResponse
from core.config import Settings, get_settings
from core.middleware import (
    ErrorHandlingMiddleware,
    StructuredLoggingMiddleware,
    setup_error_handlers,
    setup_logging,
)
from database.engine import Database, build_database

logger = logging.getLogger(__name__)

# Documented on every v1 route; bodies come from core.middleware.error_handling
ERROR_RESPONSES = {
    status_code: {"model": ErrorResponse}
    for status_code in (400, 401, 403, 404, 409)
}


def create_app(settings: Optional[Settings] = None, db: Optional[Database] = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Defaults to the environment settings
        db: Database handle; built from settings when omitted

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()
    setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan events."""
        database = db or build_database(settings)
        logger.info(f"Starting {settings.app_name} in {settings.app_env} environment")
        await database.open()
        if settings.app_env == "development":
            await database.create_all()
        app.state.db = database

        yield

        logger.info(f"Shutting down {settings.app_name}")
        await database.close()

    app = FastAPI(
        title=settings.app_name,
        description="Applicant tracking: hiring pipelines, stage history and analytics",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    if db is not None:
        app.state.db = db

    # Setup error handlers (before middleware)
    setup_error_handlers(app)

    # Middleware executes in reverse order of registration
    app.add_middleware(
        StructuredLoggingMiddleware,
        log_request_body=settings.log_request_body,
        max_body_size=settings.log_max_body_size,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Outermost, catches everything the handlers above did not
    app.add_middleware(ErrorHandlingMiddleware, debug=settings.debug)

    app.include_router(health.router, tags=["Health"])

    prefix = settings.api_v1_prefix
    app.include_router(jobs.router, prefix=prefix, tags=["Jobs"], responses=ERROR_RESPONSES)
    app.include_router(candidates.router, prefix=prefix, tags=["Candidates"], responses=ERROR_RESPONSES)
    app.include_router(interviews.router, prefix=prefix, tags=["Interviews"], responses=ERROR_RESPONSES)
    app.include_router(analytics.router, prefix=prefix, tags=["Analytics"], responses=ERROR_RESPONSES)
    app.include_router(sla.router, prefix=prefix, tags=["SLA"], responses=ERROR_RESPONSES)
    app.include_router(notifications.router, prefix=prefix, tags=["Notifications"], responses=ERROR_RESPONSES)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
