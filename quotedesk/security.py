"""Session tokens, password hashing and the operator capability check."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, Field

from .config import Settings
from .errors import Unauthorized

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

OPERATOR_ROLE = "admin"


class Principal(BaseModel):
    """The authenticated caller, as asserted by a session token."""

    subject: str
    email: str | None = None
    roles: list[str] = Field(default_factory=list)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(principal: Principal, settings: Settings) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_minutes)
    claims = {
        "sub": principal.subject,
        "email": principal.email,
        "roles": principal.roles,
        "exp": expire,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> Principal:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise Unauthorized("Invalid authentication credentials") from exc

    subject = payload.get("sub")
    if not subject:
        raise Unauthorized("Invalid authentication credentials")
    return Principal(subject=subject, email=payload.get("email"), roles=payload.get("roles") or [])


def can_manage_quotes(principal: Principal | None, settings: Settings) -> bool:
    """Operators hold the admin role claim or a configured operator email."""

    if principal is None:
        return False
    if OPERATOR_ROLE in principal.roles:
        return True
    return bool(principal.email) and principal.email.lower() in settings.operator_emails


def require_operator(principal: Principal | None, settings: Settings) -> Principal:
    if not can_manage_quotes(principal, settings):
        raise Unauthorized()
    return principal
