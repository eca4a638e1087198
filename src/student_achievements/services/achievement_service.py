"""Achievement workflow across the reference and detail stores.

The reference row owns ownership and status; the detail document owns
content. There is no transaction spanning both, so every two-store write
runs in a fixed order and undoes its first half when the second fails.
"""

from __future__ import annotations

import logging
import math
from pathlib import PurePath
from typing import Callable, Dict, FrozenSet, List, Optional, Union
from uuid import UUID

from pydantic import ValidationError as SchemaValidationError

from ..core.security import Role, SessionClaims
from ..errors import (
    ConsistencyRepairFailure,
    Forbidden,
    InvalidStateTransition,
    NotFound,
    StorageError,
    ValidationError,
)
from ..models import AchievementReference, AchievementStatus
from ..repositories import AdvisorDirectory, DetailStore, ReferenceStore
from ..schemas import (
    AchievementContent,
    AchievementHistory,
    AchievementListItem,
    AchievementPage,
    AchievementView,
    Attachment,
    HistoryEvent,
    ReferenceRead,
)
from ..utils.datetime import utcnow
from .authorization import access_for, require_advisor_of, require_owner, require_role
from .file_storage import LocalFileStorage

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[AchievementStatus, FrozenSet[AchievementStatus]] = {
    AchievementStatus.DRAFT: frozenset({AchievementStatus.SUBMITTED, AchievementStatus.DELETED}),
    AchievementStatus.SUBMITTED: frozenset({AchievementStatus.VERIFIED, AchievementStatus.REJECTED}),
    AchievementStatus.VERIFIED: frozenset(),
    AchievementStatus.REJECTED: frozenset(),
    AchievementStatus.DELETED: frozenset(),
}


def required_source(target: AchievementStatus) -> AchievementStatus:
    """Return the only status from which ``target`` can be reached."""

    for source, targets in ALLOWED_TRANSITIONS.items():
        if target in targets:
            return source
    raise ValueError(f"{target.value} is not reachable")


def ensure_transition(current: AchievementStatus, target: AchievementStatus, action: str) -> None:
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStateTransition(current.value, required_source(target).value, action)


class AchievementCoordinator:
    """Runs every achievement operation for an authenticated caller."""

    def __init__(
        self,
        references: ReferenceStore,
        details: DetailStore,
        advisors: AdvisorDirectory,
        *,
        file_storage: Optional[LocalFileStorage] = None,
        max_upload_bytes: Optional[int] = None,
    ) -> None:
        self.references = references
        self.details = details
        self.advisors = advisors
        self.file_storage = file_storage
        self.max_upload_bytes = max_upload_bytes

    # -- helpers ---------------------------------------------------------

    def _load(self, reference_id: UUID) -> AchievementReference:
        reference = self.references.find_by_id(reference_id)
        if reference is None:
            raise NotFound()
        return reference

    def _owned(self, claims: SessionClaims, reference_id: UUID) -> AchievementReference:
        require_role(claims, Role.STUDENT)
        reference = self._load(reference_id)
        require_owner(claims, reference)
        return reference

    def _advised(self, claims: SessionClaims, reference_id: UUID) -> AchievementReference:
        require_role(claims, Role.ADVISOR)
        reference = self._load(reference_id)
        require_advisor_of(self.advisors, claims, reference.student_id)
        return reference

    def _visible(self, claims: SessionClaims, reference_id: UUID) -> AchievementReference:
        access = access_for(claims, self.advisors)
        reference = self._load(reference_id)
        if not access.can_view(reference):
            raise Forbidden()
        if reference.status is AchievementStatus.DELETED and not access.sees_deleted:
            raise NotFound()
        return reference

    def _compensate(
        self,
        description: str,
        action: Callable[[], None],
        *,
        reference_id: Optional[UUID] = None,
        detail_ref: Optional[str] = None,
    ) -> None:
        """Run a best-effort undo step; a failure is logged as a ConsistencyRepairFailure, not raised."""

        logger.warning(
            "compensating: %s (reference=%s detail=%s)", description, reference_id, detail_ref
        )
        try:
            action()
        except Exception as exc:
            failure = ConsistencyRepairFailure(
                f"{description} failed",
                reference_id=str(reference_id) if reference_id else None,
                detail_ref=detail_ref,
            )
            logger.error(
                "consistency repair failed: %s (reference=%s detail=%s)",
                failure.detail,
                failure.reference_id,
                failure.detail_ref,
                exc_info=exc,
            )

    # -- writes ----------------------------------------------------------

    def create(self, claims: SessionClaims, content: AchievementContent) -> AchievementReference:
        """Insert the detail document, then the reference pointing at it."""

        require_role(claims, Role.STUDENT)
        if claims.student_id is None:
            raise ValidationError("Session has no linked student.")

        now = utcnow()
        detail_ref = self.details.insert(claims.student_id, content, now=now)
        reference = AchievementReference(
            student_id=claims.student_id,
            detail_ref=detail_ref,
            status=AchievementStatus.DRAFT,
            created_at=now,
            updated_at=now,
        )
        try:
            reference = self.references.create(reference)
        except Exception:
            self._compensate(
                "remove detail of unsaved achievement",
                lambda: self.details.remove(detail_ref),
                detail_ref=detail_ref,
            )
            raise

        logger.info("achievement %s created as draft (detail=%s)", reference.id, detail_ref)
        return reference

    def submit(self, claims: SessionClaims, reference_id: UUID) -> AchievementReference:
        reference = self._owned(claims, reference_id)
        ensure_transition(reference.status, AchievementStatus.SUBMITTED, "submit achievement")
        reference = self.references.update_status(
            reference.id,
            AchievementStatus.SUBMITTED,
            expected_status=AchievementStatus.DRAFT,
        )
        logger.info("achievement %s submitted", reference.id)
        return reference

    def delete(self, claims: SessionClaims, reference_id: UUID) -> AchievementReference:
        """Soft-delete the detail, then flag the reference; undo the first if the second fails.

        The undo only runs when this call set the detail flag and the
        reference did not end up deleted by a concurrent call.
        """

        reference = self._owned(claims, reference_id)
        ensure_transition(reference.status, AchievementStatus.DELETED, "delete achievement")

        now = utcnow()
        detail_ref = reference.detail_ref
        try:
            marked = self.details.mark_deleted(detail_ref, now=now)
        except NotFound as exc:
            logger.warning(
                "detail %s missing while deleting achievement %s", detail_ref, reference.id
            )
            raise StorageError("Could not delete achievement.") from exc

        try:
            reference = self.references.update_status(
                reference.id,
                AchievementStatus.DELETED,
                expected_status=AchievementStatus.DRAFT,
                now=now,
            )
        except Exception as exc:
            already_deleted = (
                isinstance(exc, InvalidStateTransition)
                and exc.current == AchievementStatus.DELETED.value
            )
            if marked and not already_deleted:
                self._compensate(
                    "restore soft-deleted detail",
                    lambda: self.details.unmark_deleted(detail_ref),
                    reference_id=reference_id,
                    detail_ref=detail_ref,
                )
            raise

        logger.info("achievement %s deleted", reference.id)
        return reference

    def update_content(
        self, claims: SessionClaims, reference_id: UUID, content: AchievementContent
    ) -> AchievementReference:
        """Replace the whole editable content of a draft."""

        reference = self._owned(claims, reference_id)
        if reference.status is not AchievementStatus.DRAFT:
            raise InvalidStateTransition(
                reference.status.value, AchievementStatus.DRAFT.value, "update achievement"
            )

        detail_ref = reference.detail_ref
        previous = self.details.find_by_ref(detail_ref)
        if previous is None:
            raise NotFound("Achievement content not found")
        restore = AchievementContent.model_validate(
            previous.model_dump(include=set(AchievementContent.model_fields))
        )

        now = utcnow()
        self.details.replace_content(detail_ref, content, now=now)
        try:
            reference = self.references.touch(
                reference.id, expected_status=AchievementStatus.DRAFT, now=now
            )
        except Exception:
            self._compensate(
                "restore previous detail content",
                lambda: self.details.replace_content(detail_ref, restore, now=previous.updated_at),
                reference_id=reference_id,
                detail_ref=detail_ref,
            )
            raise
        return reference

    def add_attachment(
        self, claims: SessionClaims, reference_id: UUID, attachment: Attachment
    ) -> Attachment:
        reference = self._owned(claims, reference_id)
        if reference.status is AchievementStatus.DELETED:
            raise InvalidStateTransition(
                reference.status.value, "any status except deleted", "add attachment"
            )
        self.details.append_attachment(reference.detail_ref, attachment)
        return attachment

    def upload_attachment(
        self,
        claims: SessionClaims,
        reference_id: UUID,
        *,
        file_name: str,
        data: bytes,
        file_type: Optional[str] = None,
    ) -> Attachment:
        """Store the file, then record it on the detail; remove the file if recording fails."""

        if self.file_storage is None:
            raise StorageError("Attachment storage is not configured.")
        if not file_name:
            raise ValidationError("An attachment file is required.")
        if self.max_upload_bytes is not None and len(data) > self.max_upload_bytes:
            raise ValidationError(f"Attachment exceeds {self.max_upload_bytes} bytes.")

        reference = self._owned(claims, reference_id)
        if reference.status is AchievementStatus.DELETED:
            raise InvalidStateTransition(
                reference.status.value, "any status except deleted", "add attachment"
            )

        stored = self.file_storage.save(str(reference.id), file_name, data)
        attachment = Attachment(
            file_name=file_name,
            file_url=stored.url,
            file_type=file_type or PurePath(file_name).suffix.lstrip("."),
            uploaded_at=utcnow(),
        )
        try:
            self.add_attachment(claims, reference_id, attachment)
        except Exception:
            self._compensate(
                "remove stored attachment file",
                lambda: self.file_storage.delete(stored),
                reference_id=reference_id,
                detail_ref=reference.detail_ref,
            )
            raise
        return attachment

    def verify(self, claims: SessionClaims, reference_id: UUID) -> AchievementReference:
        reference = self._advised(claims, reference_id)
        ensure_transition(reference.status, AchievementStatus.VERIFIED, "verify achievement")
        reference = self.references.update_status(
            reference.id,
            AchievementStatus.VERIFIED,
            expected_status=AchievementStatus.SUBMITTED,
            verifier_id=claims.lecturer_id,
        )
        logger.info("achievement %s verified by %s", reference.id, claims.lecturer_id)
        return reference

    def reject(self, claims: SessionClaims, reference_id: UUID, note: str) -> AchievementReference:
        reference = self._advised(claims, reference_id)
        ensure_transition(reference.status, AchievementStatus.REJECTED, "reject achievement")
        note = (note or "").strip()
        if not note:
            raise ValidationError("A rejection note is required.")
        reference = self.references.update_status(
            reference.id,
            AchievementStatus.REJECTED,
            expected_status=AchievementStatus.SUBMITTED,
            verifier_id=claims.lecturer_id,
            rejection_note=note,
        )
        logger.info("achievement %s rejected by %s", reference.id, claims.lecturer_id)
        return reference

    # -- reads -----------------------------------------------------------

    def _list_item(self, reference: AchievementReference) -> AchievementListItem:
        item = AchievementListItem.model_validate(ReferenceRead.model_validate(reference).model_dump())
        try:
            detail = self.details.find_by_ref(reference.detail_ref)
        except (StorageError, SchemaValidationError):
            logger.warning(
                "detail %s unavailable for achievement %s", reference.detail_ref, reference.id,
                exc_info=True,
            )
            return item
        if detail is None:
            return item
        return item.model_copy(
            update={
                "title": detail.title,
                "achievement_type": detail.achievement_type,
                "points": detail.points,
                "tags": list(detail.tags),
            }
        )

    def list(
        self,
        claims: SessionClaims,
        *,
        status: Optional[Union[str, AchievementStatus]] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> AchievementPage:
        """List achievements visible to the caller, newest first."""

        access = access_for(claims, self.advisors)
        references, total, page, page_size = access.references(
            self.references, status=status, page=page, page_size=page_size
        )
        items: List[AchievementListItem] = [self._list_item(reference) for reference in references]
        return AchievementPage(
            items=items,
            page=page,
            page_size=page_size,
            total=total,
            total_pages=math.ceil(total / page_size) if total else 0,
        )

    def get(self, claims: SessionClaims, reference_id: UUID) -> AchievementView:
        reference = self._visible(claims, reference_id)
        detail = None
        try:
            detail = self.details.find_by_ref(
                reference.detail_ref,
                exclude_deleted=reference.status is not AchievementStatus.DELETED,
            )
        except SchemaValidationError:
            logger.warning("detail %s is malformed", reference.detail_ref, exc_info=True)
        view = AchievementView.model_validate(ReferenceRead.model_validate(reference).model_dump())
        return view.model_copy(update={"detail": detail})

    def history(self, claims: SessionClaims, reference_id: UUID) -> AchievementHistory:
        reference = self._visible(claims, reference_id)
        events = [HistoryEvent(status="created", at=reference.created_at)]
        if reference.submitted_at is not None:
            events.append(HistoryEvent(status="submitted", at=reference.submitted_at))
        if reference.verified_at is not None and reference.status is AchievementStatus.VERIFIED:
            events.append(HistoryEvent(status="verified", at=reference.verified_at))
        if reference.verified_at is not None and reference.status is AchievementStatus.REJECTED:
            events.append(
                HistoryEvent(status="rejected", at=reference.verified_at, note=reference.rejection_note)
            )
        if reference.status is AchievementStatus.DELETED:
            events.append(HistoryEvent(status="deleted", at=reference.updated_at))
        return AchievementHistory(
            id=reference.id,
            student_id=reference.student_id,
            current_status=reference.status,
            events=events,
        )
