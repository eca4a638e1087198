"""Bearer-token session claims.

Credentials are verified elsewhere; this module only turns a signed access
token into the claims the achievement workflow trusts.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, FrozenSet, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import Settings, get_settings

bearer_scheme = HTTPBearer(auto_error=False)


class Role(str, enum.Enum):
    """Roles recognised by the achievement workflow."""

    ADMIN = "admin"
    ADVISOR = "advisor"
    STUDENT = "student"


@dataclass(frozen=True)
class SessionClaims:
    """Identity attached to a request."""

    subject_id: UUID
    role: Role
    student_id: Optional[UUID] = None
    lecturer_id: Optional[UUID] = None
    permissions: FrozenSet[str] = field(default_factory=frozenset)


def _optional_uuid(value: Any) -> Optional[UUID]:
    return UUID(str(value)) if value else None


class TokenVerifier:
    """Encodes and decodes access tokens with an explicit key."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: int = 60) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._expire_minutes = expire_minutes

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenVerifier":
        return cls(
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
            expire_minutes=settings.access_token_expire_minutes,
        )

    def create_access_token(self, claims: SessionClaims, expires_delta: Optional[timedelta] = None) -> str:
        expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=self._expire_minutes))
        payload: Dict[str, Any] = {
            "sub": str(claims.subject_id),
            "role": claims.role.value,
            "permissions": sorted(claims.permissions),
            "exp": expire,
        }
        if claims.student_id:
            payload["student_id"] = str(claims.student_id)
        if claims.lecturer_id:
            payload["lecturer_id"] = str(claims.lecturer_id)
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def decode(self, token: str) -> SessionClaims:
        """Return claims for ``token`` or raise ``ValueError``."""

        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
            return SessionClaims(
                subject_id=UUID(payload["sub"]),
                role=Role(payload["role"]),
                student_id=_optional_uuid(payload.get("student_id")),
                lecturer_id=_optional_uuid(payload.get("lecturer_id")),
                permissions=frozenset(payload.get("permissions") or ()),
            )
        except (JWTError, KeyError, ValueError) as exc:
            raise ValueError("invalid access token") from exc


def get_token_verifier(settings: Settings = Depends(get_settings)) -> TokenVerifier:
    return TokenVerifier.from_settings(settings)


def get_current_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> SessionClaims:
    """Resolve the caller's session claims from the bearer token."""

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return verifier.decode(credentials.credentials)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
