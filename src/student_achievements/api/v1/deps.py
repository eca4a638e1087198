"""Request-scoped wiring of the achievement coordinator."""

from __future__ import annotations

from fastapi import Depends
from pymongo.collection import Collection
from sqlalchemy.orm import Session

from ...core.config import Settings, get_settings
from ...core.database import get_db
from ...core.documents import get_achievement_collection
from ...repositories import AdvisorDirectory, DetailStore, ReferenceStore
from ...services.achievement_service import AchievementCoordinator
from ...services.file_storage import LocalFileStorage


def get_coordinator(
    db: Session = Depends(get_db),
    collection: Collection = Depends(get_achievement_collection),
    settings: Settings = Depends(get_settings),
) -> AchievementCoordinator:
    return AchievementCoordinator(
        ReferenceStore(db),
        DetailStore(collection),
        AdvisorDirectory(db),
        file_storage=LocalFileStorage(settings.upload_dir, settings.upload_url_prefix),
        max_upload_bytes=settings.max_upload_bytes,
    )
