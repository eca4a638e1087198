"""Relational store for achievement references."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Sequence, Tuple, Union
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import AchievementReference, AchievementStatus
from ..errors import InvalidStateTransition, NotFound, StorageError, ValidationError
from ..utils.datetime import utcnow

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 10


def clamp_page(page: Optional[int], page_size: Optional[int]) -> Tuple[int, int]:
    """Clamp pagination to page >= 1 and page_size in [1, 100]."""

    page = page if page and page > 0 else 1
    if not page_size or page_size < 1:
        page_size = DEFAULT_PAGE_SIZE
    return page, min(page_size, MAX_PAGE_SIZE)


def _coerce_status(value: Union[str, AchievementStatus]) -> AchievementStatus:
    try:
        return AchievementStatus(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown achievement status '{value}'.") from exc


class ReferenceStore:
    """Reads and conditionally writes ``achievement_references`` rows.

    Every write commits immediately; the coordinator relies on a failed
    write surfacing here rather than at the end of the request.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def _commit(self, action: str) -> None:
        try:
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise StorageError(f"Could not {action}.") from exc

    def create(self, reference: AchievementReference) -> AchievementReference:
        if reference.student_id is None:
            raise ValidationError("student_id must be set before creating a reference.")
        if not reference.detail_ref:
            raise ValidationError("detail_ref must be set before creating a reference.")

        now = utcnow()
        reference.status = reference.status or AchievementStatus.DRAFT
        reference.created_at = reference.created_at or now
        reference.updated_at = now
        try:
            self._session.add(reference)
            self._session.flush()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise StorageError("Could not save achievement.") from exc
        self._commit("save achievement")
        self._session.refresh(reference)
        return reference

    def find_by_id(self, reference_id: UUID) -> Optional[AchievementReference]:
        try:
            stmt = select(AchievementReference).where(AchievementReference.id == reference_id)
            return self._session.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise StorageError("Could not load achievement.") from exc

    def find_by_student(self, student_id: UUID) -> Sequence[AchievementReference]:
        return self.find_by_advisees([student_id])

    def find_by_advisees(self, student_ids: Iterable[UUID]) -> Sequence[AchievementReference]:
        """Return non-deleted references owned by any of ``student_ids``, newest first."""

        student_ids = list(student_ids)
        if not student_ids:
            return []
        stmt = (
            select(AchievementReference)
            .where(
                AchievementReference.student_id.in_(student_ids),
                AchievementReference.status != AchievementStatus.DELETED,
            )
            .order_by(AchievementReference.created_at.desc())
        )
        try:
            return self._session.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise StorageError("Could not list achievements.") from exc

    def find_all(
        self,
        *,
        status: Optional[Union[str, AchievementStatus]] = None,
        page: Optional[int] = 1,
        page_size: Optional[int] = DEFAULT_PAGE_SIZE,
    ) -> Tuple[Sequence[AchievementReference], int]:
        """Return one page of references in any status, plus the total count."""

        page, page_size = clamp_page(page, page_size)
        filters = []
        if status:
            filters.append(AchievementReference.status == _coerce_status(status))

        count_stmt = select(func.count()).select_from(AchievementReference).where(*filters)
        stmt = (
            select(AchievementReference)
            .where(*filters)
            .order_by(AchievementReference.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        try:
            total = self._session.execute(count_stmt).scalar_one()
            items = self._session.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise StorageError("Could not list achievements.") from exc
        return items, total

    def _conditional_update(
        self,
        reference_id: UUID,
        expected_status: AchievementStatus,
        values: dict,
        action: str,
    ) -> AchievementReference:
        stmt = (
            update(AchievementReference)
            .where(
                AchievementReference.id == reference_id,
                AchievementReference.status == expected_status,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self._session.execute(stmt)
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise StorageError(f"Could not {action}.") from exc

        if result.rowcount == 0:
            self._session.rollback()
            current = self.find_by_id(reference_id)
            if current is None:
                raise NotFound()
            raise InvalidStateTransition(current.status.value, expected_status.value, action)

        self._commit(action)
        reference = self.find_by_id(reference_id)
        self._session.refresh(reference)
        return reference

    def update_status(
        self,
        reference_id: UUID,
        new_status: Union[str, AchievementStatus],
        *,
        expected_status: Union[str, AchievementStatus],
        verifier_id: Optional[UUID] = None,
        rejection_note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AchievementReference:
        """Move a reference to ``new_status`` only if it is still in ``expected_status``.

        Sets exactly the columns belonging to the target status. Zero
        affected rows means another writer got there first (or the row is
        gone) and is reported as such rather than ignored.
        """

        new_status = _coerce_status(new_status)
        expected_status = _coerce_status(expected_status)
        now = now or utcnow()

        values = {"status": new_status, "updated_at": now}
        if new_status is AchievementStatus.SUBMITTED:
            values["submitted_at"] = now
        elif new_status in (AchievementStatus.VERIFIED, AchievementStatus.REJECTED):
            values["verified_at"] = now
            values["verified_by"] = verifier_id
            if new_status is AchievementStatus.REJECTED:
                values["rejection_note"] = rejection_note

        return self._conditional_update(
            reference_id, expected_status, values, f"mark achievement {new_status.value}"
        )

    def touch(
        self,
        reference_id: UUID,
        *,
        expected_status: Union[str, AchievementStatus],
        now: Optional[datetime] = None,
    ) -> AchievementReference:
        """Refresh ``updated_at`` without changing status."""

        return self._conditional_update(
            reference_id,
            _coerce_status(expected_status),
            {"updated_at": now or utcnow()},
            "update achievement",
        )

    def detail_refs_by_status(self) -> Sequence[Tuple[UUID, str, AchievementStatus]]:
        """Return ``(id, detail_ref, status)`` for every reference."""

        stmt = select(
            AchievementReference.id,
            AchievementReference.detail_ref,
            AchievementReference.status,
        )
        try:
            return [tuple(row) for row in self._session.execute(stmt).all()]
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise StorageError("Could not scan achievements.") from exc
