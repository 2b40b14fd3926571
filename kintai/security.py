from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from kintai.errors import ApiError
from kintai.models import AuditActorType
from kintai.settings import get_settings

bearer_scheme = HTTPBearer(auto_error=False)
TOKEN_ALGORITHM = "HS256"


@dataclass(frozen=True)
class CurrentActor:
    user_id: str
    is_approver: bool = False
    is_admin: bool = False

    @property
    def can_approve(self) -> bool:
        return self.is_approver

    @property
    def audit_actor_type(self) -> AuditActorType:
        return AuditActorType.APPROVER if self.is_approver else AuditActorType.USER


def create_access_token(
    *,
    user_id: str,
    is_approver: bool = False,
    is_admin: bool = False,
    expires_minutes: int = 30,
) -> str:
    """Sign a token with the claim layout the identity service issues.

    Production tokens come from that service; this is for local development
    and tests, where no identity service is running.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "is_approver": is_approver,
        "is_admin": is_admin,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expires_minutes)).timestamp()),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=TOKEN_ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[TOKEN_ALGORITHM],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require_sub": True, "require_exp": True},
        )
    except JWTError as exc:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token is invalid.") from exc

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token subject is invalid.")
    return payload


def require_actor(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CurrentActor:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Missing bearer token.")

    payload = decode_token(credentials.credentials)
    actor = CurrentActor(
        user_id=str(payload["sub"]),
        is_approver=bool(payload.get("is_approver")),
        is_admin=bool(payload.get("is_admin")),
    )
    request.state.actor = "approver" if actor.is_approver else "user"
    request.state.actor_id = actor.user_id
    return actor


def require_approver(actor: CurrentActor = Depends(require_actor)) -> CurrentActor:
    if not actor.can_approve:
        raise ApiError(status_code=403, code="FORBIDDEN", message="Approver permission required.")
    return actor
