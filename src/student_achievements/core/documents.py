"""MongoDB client and collection wiring for achievement details."""

from functools import lru_cache

from pymongo import MongoClient
from pymongo.collection import Collection

from .config import get_settings


@lru_cache(maxsize=1)
def get_mongo_client() -> MongoClient:
    """Return the process-wide pooled client."""

    settings = get_settings()
    timeout_ms = int(settings.store_timeout_seconds * 1000)
    return MongoClient(
        settings.mongo_url,
        timeoutMS=timeout_ms,
        serverSelectionTimeoutMS=timeout_ms,
    )


def get_achievement_collection() -> Collection:
    """FastAPI dependency yielding the achievement detail collection."""

    settings = get_settings()
    return get_mongo_client()[settings.mongo_database][settings.mongo_collection]
