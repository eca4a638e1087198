"""FastAPI application entrypoint for the student achievement service."""

import logging

from fastapi import FastAPI

from .api.v1.router import api_router
from .core.config import get_settings
from .core.database import Base, engine
from .core.documents import get_achievement_collection
from .jobs import register_scheduler
from .repositories import DetailStore

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Instantiate and configure the FastAPI application."""
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(title="Student Achievement API", version="0.1.0")
    app.include_router(api_router, prefix="/api/v1")

    @app.on_event("startup")
    def prepare_stores() -> None:
        Base.metadata.create_all(bind=engine)
        if settings.mongo_ensure_indexes:
            DetailStore(get_achievement_collection()).ensure_indexes()
        logger.info("achievement stores ready")

    register_scheduler(app)
    return app


app = create_app()
