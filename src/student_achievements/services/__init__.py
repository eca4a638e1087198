"""Service layer exports."""

from . import (
    achievement_service,
    authorization,
    file_storage,
    reconciliation_service,
)

__all__ = [
    "achievement_service",
    "authorization",
    "file_storage",
    "reconciliation_service",
]
