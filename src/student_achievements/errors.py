"""Error kinds raised by the achievement workflow."""

from __future__ import annotations

from typing import Optional


class AchievementError(Exception):
    """Base error carrying the user-visible detail and HTTP status."""

    status_code = 400

    def __init__(self, detail: str, status_code: Optional[int] = None) -> None:
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code


class NotFound(AchievementError):
    status_code = 404

    def __init__(self, detail: str = "Achievement not found") -> None:
        super().__init__(detail)


class Forbidden(AchievementError):
    """Caller is authenticated but not entitled; never says why."""

    status_code = 403

    def __init__(self, detail: str = "Not authorized") -> None:
        super().__init__(detail)


class InvalidStateTransition(AchievementError):
    status_code = 409

    def __init__(self, current: str, required: str, action: str = "perform this action") -> None:
        super().__init__(
            f"Cannot {action}: achievement is '{current}', required status is '{required}'."
        )
        self.current = current
        self.required = required


class ValidationError(AchievementError):
    status_code = 422


class StorageError(AchievementError):
    status_code = 503


class ConsistencyRepairFailure(AchievementError):
    """A compensating action failed; logged, never shown to the caller."""

    status_code = 500

    def __init__(self, detail: str, reference_id: Optional[str] = None, detail_ref: Optional[str] = None) -> None:
        super().__init__(detail)
        self.reference_id = reference_id
        self.detail_ref = detail_ref
