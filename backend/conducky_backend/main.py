import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from conducky_backend.api.router import api_router
from conducky_backend.core.config import settings, validate_settings
from conducky_backend.core.logging import configure_logging
from conducky_backend.data.db import init_db

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    for problem in validate_settings(settings):
        logger.warning("Configuration: %s", problem)
    init_db()

    app = FastAPI(title=settings.app_name)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()
