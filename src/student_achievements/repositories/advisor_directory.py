"""Advisor relationships backed by the ``students`` table."""

from __future__ import annotations

from typing import Set
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Student
from ..errors import StorageError


class AdvisorDirectory:
    def __init__(self, session: Session) -> None:
        self._session = session

    def is_advisor_of(self, advisor_id: UUID, student_id: UUID) -> bool:
        stmt = select(Student.student_id).where(
            Student.student_id == student_id,
            Student.advisor_id == advisor_id,
        )
        try:
            return self._session.execute(stmt).first() is not None
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise StorageError("Could not check advisor relationship.") from exc

    def advisee_student_ids(self, advisor_id: UUID) -> Set[UUID]:
        stmt = select(Student.student_id).where(Student.advisor_id == advisor_id)
        try:
            return set(self._session.execute(stmt).scalars().all())
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise StorageError("Could not load advisees.") from exc
