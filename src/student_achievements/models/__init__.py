"""SQLAlchemy models for the achievement service."""

from .achievement_reference import AchievementReference, AchievementStatus
from .student import Student

__all__ = [
    "AchievementReference",
    "AchievementStatus",
    "Student",
]
