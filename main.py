"""Main FastAPI application for the Feedback Recommendations backend."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from feedback_recs import __version__
from feedback_recs.api import dev, feedback, health, recommendations
from feedback_recs.api.errors import register_exception_handlers
from feedback_recs.config import get_app_env, get_env_source, get_log_level, is_dev_mode
from feedback_recs.lib.config import load_environment
from feedback_recs.lib.logging_config import configure_logging, create_request_context_middleware

environment = load_environment(get_app_env())
configure_logging(get_log_level(environment.log_level))

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build the application for the current environment."""
    app = FastAPI(
        title="Feedback Recommendations API",
        description="Submit feedback and manage the recommendations generated from it",
        version=__version__,
    )

    register_exception_handlers(app)
    create_request_context_middleware(app)

    cors = environment.cors
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors.allow_origins,
        allow_credentials=cors.allow_credentials,
        allow_methods=cors.allow_methods or ["*"],
        allow_headers=cors.allow_headers or ["*"],
        expose_headers=cors.expose_headers,
        max_age=cors.max_age_seconds,
    )

    # Feedback submission (POST /feedback)
    app.include_router(feedback.router, tags=["Feedback"])

    # Recommendation records (/recommendations)
    app.include_router(recommendations.router, tags=["Recommendations"])

    app.include_router(health.router, tags=["Health"])
    app.add_api_route("/", root, methods=["GET"], include_in_schema=False)

    if is_dev_mode():
        logger.warning("DEV_MODE enabled - development endpoints mounted under /dev")
        app.include_router(dev.router, tags=["Development"])

    logger.info(
        "Application configured",
        extra={"environment": environment.name, "env_file": get_env_source()},
    )
    return app


async def root():
    """Root endpoint."""
    return {
        "service": "Feedback Recommendations API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


app = create_app()
