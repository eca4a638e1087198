"""Pydantic schemas for achievement content and workflow views."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..models import AchievementStatus


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input and emits camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AchievementType(str, enum.Enum):
    """Discriminator selecting which detail fields apply."""

    COMPETITION = "competition"
    PUBLICATION = "publication"
    ORGANIZATION = "organization"
    CERTIFICATION = "certification"
    ACADEMIC = "academic"
    OTHER = "other"


class Attachment(CamelModel):
    """Evidence file descriptor stored on the detail document."""

    file_name: str = Field(..., min_length=1, max_length=255)
    file_url: str = Field(..., min_length=1)
    file_type: str = Field(default="", max_length=50)
    uploaded_at: datetime


class CommonDetails(CamelModel):
    """Fields meaningful for every achievement type."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    event_date: Optional[datetime] = None
    location: Optional[str] = None
    organizer: Optional[str] = None
    score: Optional[float] = None


class CompetitionDetails(CommonDetails):
    competition_name: Optional[str] = None
    competition_level: Optional[str] = None
    rank: Optional[int] = Field(default=None, ge=1)
    medal_type: Optional[str] = None


class PublicationDetails(CommonDetails):
    publication_type: Optional[str] = None
    publication_title: Optional[str] = None
    authors: List[str] = Field(default_factory=list)
    publisher: Optional[str] = None
    issn: Optional[str] = None


class OrganizationPeriod(CamelModel):
    start: datetime
    end: Optional[datetime] = None

    @model_validator(mode="after")
    def _end_after_start(self) -> "OrganizationPeriod":
        if self.end is not None and self.end < self.start:
            raise ValueError("period end must not precede its start")
        return self


class OrganizationDetails(CommonDetails):
    organization_name: Optional[str] = None
    position: Optional[str] = None
    period: Optional[OrganizationPeriod] = None


class CertificationDetails(CommonDetails):
    certification_name: Optional[str] = None
    issued_by: Optional[str] = None
    certification_number: Optional[str] = None
    valid_until: Optional[datetime] = None


class AcademicDetails(CommonDetails):
    course_name: Optional[str] = None
    semester: Optional[str] = None
    gpa: Optional[float] = Field(default=None, ge=0)


AchievementDetails = Union[
    CompetitionDetails,
    PublicationDetails,
    OrganizationDetails,
    CertificationDetails,
    AcademicDetails,
    CommonDetails,
]

DETAIL_MODELS: Dict[AchievementType, type[CommonDetails]] = {
    AchievementType.COMPETITION: CompetitionDetails,
    AchievementType.PUBLICATION: PublicationDetails,
    AchievementType.ORGANIZATION: OrganizationDetails,
    AchievementType.CERTIFICATION: CertificationDetails,
    AchievementType.ACADEMIC: AcademicDetails,
}


class AchievementContent(CamelModel):
    """Student-editable content of an achievement.

    ``details`` is parsed into the sub-structure selected by
    ``achievement_type``; keys that structure does not know are moved into
    ``custom_fields`` instead of being dropped.
    """

    achievement_type: AchievementType
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    details: AchievementDetails = Field(default_factory=CommonDetails)
    custom_fields: Dict[str, Any] = Field(default_factory=dict)
    attachments: List[Attachment] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    points: int = Field(default=0, ge=0)

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value

    @field_validator("details", mode="before")
    @classmethod
    def _details_for_type(cls, value: Any, info: ValidationInfo) -> CommonDetails:
        detail_model = DETAIL_MODELS.get(info.data.get("achievement_type"), CommonDetails)
        if isinstance(value, BaseModel):
            value = {**value.model_dump(exclude_none=True), **(value.model_extra or {})}
        return detail_model.model_validate(value or {})

    @field_validator("tags")
    @classmethod
    def _unique_tags(cls, value: List[str]) -> List[str]:
        tags: List[str] = []
        for tag in value:
            tag = tag.strip()
            if tag and tag not in tags:
                tags.append(tag)
        return tags

    @model_validator(mode="after")
    def _collect_unknown_details(self) -> "AchievementContent":
        extra = self.details.model_extra or {}
        if extra:
            detail_model = type(self.details)
            known = {name: getattr(self.details, name) for name in detail_model.model_fields}
            self.details = detail_model(**known)
            self.custom_fields = {**extra, **self.custom_fields}
        return self


class AchievementDetail(AchievementContent):
    """Detail document as stored in the document store."""

    id: str
    student_id: UUID
    deleted: bool = False
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ReferenceRead(CamelModel):
    """Workflow state of one achievement."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    student_id: UUID
    detail_ref: str
    status: AchievementStatus
    submitted_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[UUID] = None
    rejection_note: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AchievementListItem(ReferenceRead):
    """Reference enriched with summary content; content fields are absent when the detail is missing."""

    title: Optional[str] = None
    achievement_type: Optional[AchievementType] = None
    points: Optional[int] = None
    tags: Optional[List[str]] = None


class AchievementPage(CamelModel):
    items: List[AchievementListItem]
    page: int
    page_size: int
    total: int
    total_pages: int


class AchievementView(ReferenceRead):
    """Reference combined with its full detail document."""

    detail: Optional[AchievementDetail] = None


class HistoryEvent(CamelModel):
    status: str
    at: datetime
    note: Optional[str] = None


class AchievementHistory(CamelModel):
    id: UUID
    student_id: UUID
    current_status: AchievementStatus
    events: List[HistoryEvent]


class RejectRequest(CamelModel):
    rejection_note: str = Field(..., max_length=2000)
