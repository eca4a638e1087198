"""Public schema exports."""

from .achievement import (
    AchievementContent,
    AchievementDetail,
    AchievementHistory,
    AchievementListItem,
    AchievementPage,
    AchievementType,
    AchievementView,
    Attachment,
    CompetitionDetails,
    HistoryEvent,
    ReferenceRead,
    RejectRequest,
)

__all__ = [
    "AchievementContent",
    "AchievementDetail",
    "AchievementHistory",
    "AchievementListItem",
    "AchievementPage",
    "AchievementType",
    "AchievementView",
    "Attachment",
    "CompetitionDetails",
    "HistoryEvent",
    "ReferenceRead",
    "RejectRequest",
]
