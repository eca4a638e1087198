"""Achievement endpoints."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status

from ...core.security import SessionClaims, get_current_claims
from ...errors import AchievementError
from ...models import AchievementStatus
from ...schemas import (
    AchievementContent,
    AchievementHistory,
    AchievementPage,
    AchievementView,
    Attachment,
    ReferenceRead,
    RejectRequest,
)
from ...services.achievement_service import AchievementCoordinator
from .deps import get_coordinator

router = APIRouter(prefix="/achievements", tags=["achievements"])


def _http_error(exc: AchievementError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail)


@router.post(
    "",
    response_model=ReferenceRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a draft achievement",
    responses={
        201: {
            "description": "Achievement saved as draft",
            "content": {
                "application/json": {
                    "example": {
                        "id": "3f0c1b8e-6a0e-4c55-9d55-1e1f4b0b7a10",
                        "studentId": "aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa",
                        "detailRef": "6650f1c2a4b9d3e1f0c2b7a1",
                        "status": "draft",
                        "submittedAt": None,
                        "verifiedAt": None,
                        "verifiedBy": None,
                        "rejectionNote": None,
                        "createdAt": "2025-11-12T10:15:30",
                        "updatedAt": "2025-11-12T10:15:30",
                    }
                }
            },
        },
        403: {"description": "Not a student"},
        503: {"description": "Store unavailable"},
    },
)
def create_achievement(
    payload: AchievementContent,
    claims: SessionClaims = Depends(get_current_claims),
    coordinator: AchievementCoordinator = Depends(get_coordinator),
) -> ReferenceRead:
    """Record a new achievement for the calling student.

    Example request body::

        {
            "achievementType": "competition",
            "title": "Hackathon Winner",
            "description": "First place at the campus hackathon",
            "details": {"competitionName": "HackCampus", "competitionLevel": "national", "rank": 1},
            "tags": ["hackathon"],
            "points": 10
        }
    """

    try:
        reference = coordinator.create(claims, payload)
    except AchievementError as exc:
        raise _http_error(exc) from exc
    return ReferenceRead.model_validate(reference)


@router.get(
    "",
    response_model=AchievementPage,
    summary="List achievements visible to the caller",
)
def list_achievements(
    *,
    status_filter: Optional[AchievementStatus] = Query(
        None, alias="status", description="Filter by status (admin only)"
    ),
    page: int = Query(1, description="Page number, clamped to at least 1"),
    page_size: int = Query(10, alias="pageSize", description="Items per page, clamped to 1..100"),
    claims: SessionClaims = Depends(get_current_claims),
    coordinator: AchievementCoordinator = Depends(get_coordinator),
) -> AchievementPage:
    """Students see their own, advisors their advisees', admins everything."""

    try:
        return coordinator.list(claims, status=status_filter, page=page, page_size=page_size)
    except AchievementError as exc:
        raise _http_error(exc) from exc


@router.get("/{achievement_id}", response_model=AchievementView, summary="Get achievement detail")
def get_achievement(
    achievement_id: UUID,
    claims: SessionClaims = Depends(get_current_claims),
    coordinator: AchievementCoordinator = Depends(get_coordinator),
) -> AchievementView:
    try:
        return coordinator.get(claims, achievement_id)
    except AchievementError as exc:
        raise _http_error(exc) from exc


@router.put("/{achievement_id}", response_model=ReferenceRead, summary="Replace draft content")
def update_achievement(
    achievement_id: UUID,
    payload: AchievementContent,
    claims: SessionClaims = Depends(get_current_claims),
    coordinator: AchievementCoordinator = Depends(get_coordinator),
) -> ReferenceRead:
    """Replace the full content of a draft; omitted fields are reset."""

    try:
        reference = coordinator.update_content(claims, achievement_id, payload)
    except AchievementError as exc:
        raise _http_error(exc) from exc
    return ReferenceRead.model_validate(reference)


@router.delete("/{achievement_id}", response_model=ReferenceRead, summary="Delete a draft")
def delete_achievement(
    achievement_id: UUID,
    claims: SessionClaims = Depends(get_current_claims),
    coordinator: AchievementCoordinator = Depends(get_coordinator),
) -> ReferenceRead:
    try:
        reference = coordinator.delete(claims, achievement_id)
    except AchievementError as exc:
        raise _http_error(exc) from exc
    return ReferenceRead.model_validate(reference)


@router.post("/{achievement_id}/submit", response_model=ReferenceRead, summary="Submit for verification")
def submit_achievement(
    achievement_id: UUID,
    claims: SessionClaims = Depends(get_current_claims),
    coordinator: AchievementCoordinator = Depends(get_coordinator),
) -> ReferenceRead:
    try:
        reference = coordinator.submit(claims, achievement_id)
    except AchievementError as exc:
        raise _http_error(exc) from exc
    return ReferenceRead.model_validate(reference)


@router.post("/{achievement_id}/verify", response_model=ReferenceRead, summary="Verify a submission")
def verify_achievement(
    achievement_id: UUID,
    claims: SessionClaims = Depends(get_current_claims),
    coordinator: AchievementCoordinator = Depends(get_coordinator),
) -> ReferenceRead:
    try:
        reference = coordinator.verify(claims, achievement_id)
    except AchievementError as exc:
        raise _http_error(exc) from exc
    return ReferenceRead.model_validate(reference)


@router.post("/{achievement_id}/reject", response_model=ReferenceRead, summary="Reject a submission")
def reject_achievement(
    achievement_id: UUID,
    payload: RejectRequest,
    claims: SessionClaims = Depends(get_current_claims),
    coordinator: AchievementCoordinator = Depends(get_coordinator),
) -> ReferenceRead:
    """Reject with a note shown to the student.

    Example request body::

        {"rejectionNote": "Certificate scan is unreadable"}
    """

    try:
        reference = coordinator.reject(claims, achievement_id, payload.rejection_note)
    except AchievementError as exc:
        raise _http_error(exc) from exc
    return ReferenceRead.model_validate(reference)


@router.get("/{achievement_id}/history", response_model=AchievementHistory, summary="Status timeline")
def achievement_history(
    achievement_id: UUID,
    claims: SessionClaims = Depends(get_current_claims),
    coordinator: AchievementCoordinator = Depends(get_coordinator),
) -> AchievementHistory:
    try:
        return coordinator.history(claims, achievement_id)
    except AchievementError as exc:
        raise _http_error(exc) from exc


@router.post(
    "/{achievement_id}/attachments",
    response_model=Attachment,
    status_code=status.HTTP_201_CREATED,
    summary="Upload evidence",
)
def upload_attachment(
    achievement_id: UUID,
    file: UploadFile = File(...),
    file_type: Optional[str] = Form(None, alias="fileType"),
    claims: SessionClaims = Depends(get_current_claims),
    coordinator: AchievementCoordinator = Depends(get_coordinator),
) -> Attachment:
    """Store an evidence file and append it to the achievement's attachments."""

    limit = coordinator.max_upload_bytes
    # one byte past the cap is enough to reject oversized files
    data = file.file.read(limit + 1) if limit is not None else file.file.read()
    try:
        return coordinator.upload_attachment(
            claims,
            achievement_id,
            file_name=file.filename or "",
            data=data,
            file_type=file_type,
        )
    except AchievementError as exc:
        raise _http_error(exc) from exc
