"""Achievement reference: the authoritative workflow record."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum as SAEnum, Index, String, Text, Uuid

from ..core.database import Base


class AchievementStatus(str, enum.Enum):
    """Workflow states of an achievement."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    VERIFIED = "verified"
    REJECTED = "rejected"
    DELETED = "deleted"


class AchievementReference(Base):
    """One row per achievement, pointing at its detail document by value."""

    __tablename__ = "achievement_references"
    __table_args__ = (
        Index("achievement_references_student_created_idx", "student_id", "created_at"),
        Index("achievement_references_status_idx", "status"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid(as_uuid=True), nullable=False)
    detail_ref = Column(String(24), nullable=False)
    status = Column(
        SAEnum(
            AchievementStatus,
            name="achievement_status",
            values_callable=lambda statuses: [status.value for status in statuses],
        ),
        nullable=False,
        default=AchievementStatus.DRAFT,
    )
    submitted_at = Column(DateTime)
    verified_at = Column(DateTime)
    verified_by = Column(Uuid(as_uuid=True))
    rejection_note = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
