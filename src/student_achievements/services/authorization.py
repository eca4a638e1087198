"""Authorization predicates and per-role access strategies."""

from __future__ import annotations

from typing import Dict, Optional, Sequence, Tuple, Type, Union
from uuid import UUID

from ..core.security import Role, SessionClaims
from ..errors import Forbidden
from ..models import AchievementReference, AchievementStatus
from ..repositories import AdvisorDirectory, ReferenceStore, clamp_page


def has_role(claims: SessionClaims, *roles: Role) -> bool:
    return claims.role in roles


def require_role(claims: SessionClaims, *roles: Role) -> None:
    if not has_role(claims, *roles):
        raise Forbidden()


def is_owner(claims: SessionClaims, reference: AchievementReference) -> bool:
    return claims.student_id is not None and reference.student_id == claims.student_id


def require_owner(claims: SessionClaims, reference: AchievementReference) -> None:
    if not is_owner(claims, reference):
        raise Forbidden()


def is_advisor_of(advisors: AdvisorDirectory, advisor_id: Optional[UUID], student_id: UUID) -> bool:
    if advisor_id is None:
        return False
    return advisors.is_advisor_of(advisor_id, student_id)


def require_advisor_of(advisors: AdvisorDirectory, claims: SessionClaims, student_id: UUID) -> None:
    if not is_advisor_of(advisors, claims.lecturer_id, student_id):
        raise Forbidden()


Listing = Tuple[Sequence[AchievementReference], int, int, int]


class RoleAccess:
    """What one role may read. One subclass per role."""

    sees_deleted = False

    def __init__(self, claims: SessionClaims, advisors: AdvisorDirectory) -> None:
        self.claims = claims
        self.advisors = advisors

    def can_view(self, reference: AchievementReference) -> bool:
        raise NotImplementedError

    def references(
        self,
        store: ReferenceStore,
        *,
        status: Optional[Union[str, AchievementStatus]] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> Listing:
        """Return ``(items, total, page, page_size)`` visible to this role."""

        raise NotImplementedError


def _whole_listing(items: Sequence[AchievementReference]) -> Listing:
    return items, len(items), 1, max(len(items), 1)


class StudentAccess(RoleAccess):
    def can_view(self, reference: AchievementReference) -> bool:
        return is_owner(self.claims, reference)

    def references(self, store, *, status=None, page=None, page_size=None) -> Listing:
        if self.claims.student_id is None:
            raise Forbidden()
        return _whole_listing(store.find_by_student(self.claims.student_id))


class AdvisorAccess(RoleAccess):
    def can_view(self, reference: AchievementReference) -> bool:
        return is_advisor_of(self.advisors, self.claims.lecturer_id, reference.student_id)

    def references(self, store, *, status=None, page=None, page_size=None) -> Listing:
        if self.claims.lecturer_id is None:
            raise Forbidden()
        advisees = self.advisors.advisee_student_ids(self.claims.lecturer_id)
        return _whole_listing(store.find_by_advisees(advisees))


class AdminAccess(RoleAccess):
    sees_deleted = True

    def can_view(self, reference: AchievementReference) -> bool:
        return True

    def references(self, store, *, status=None, page=None, page_size=None) -> Listing:
        page, page_size = clamp_page(page, page_size)
        items, total = store.find_all(status=status, page=page, page_size=page_size)
        return items, total, page, page_size


ROLE_ACCESS: Dict[Role, Type[RoleAccess]] = {
    Role.STUDENT: StudentAccess,
    Role.ADVISOR: AdvisorAccess,
    Role.ADMIN: AdminAccess,
}


def access_for(claims: SessionClaims, advisors: AdvisorDirectory) -> RoleAccess:
    access_cls = ROLE_ACCESS.get(claims.role)
    if access_cls is None:
        raise Forbidden()
    return access_cls(claims, advisors)
