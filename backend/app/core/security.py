from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from jose import jwt

from app.core.config import get_settings


class CallerRole(str, Enum):
    student = "student"
    school_supervisor = "school_supervisor"
    industry_supervisor = "industry_supervisor"
    admin = "admin"


@dataclass(frozen=True)
class Caller:
    """Authenticated identity handed to the engine by the API layer."""

    id: str
    role: CallerRole


def create_access_token(subject: str, role: CallerRole, expires_delta: timedelta | None = None) -> str:
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {"sub": subject, "role": role.value, "exp": expire}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
