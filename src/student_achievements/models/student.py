"""Student directory model backing advisor lookups."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, UniqueConstraint, Uuid

from ..core.database import Base


class Student(Base):
    """A student record and the lecturer assigned as their advisor."""

    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("student_number", name="students_student_number_unique"),
    )

    student_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False)
    student_number = Column(String(20), nullable=False)
    program_study = Column(String(100))
    academic_year = Column(String(10))
    advisor_id = Column(Uuid(as_uuid=True), index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
