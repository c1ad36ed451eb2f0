"""
Session Resolution

This module turns the inbound session cookie into the local user it refers to.
It provides the FastAPI dependency used by every post-auth route.

Usage in endpoints:
    @router.get("/me")
    def me(user: User = Depends(get_current_user)):
        return {"user": user.id}

Flow:
1. Client sends request with the session cookie (user_session=<user id>)
2. parse_session_cookie() classifies it as absent, present-invalid or present-valid
3. SessionResolver.resolve() loads the User for a valid credential
4. Any failure raises UnauthenticatedError, which always renders the same body,
   so a stale or forged id cannot be told apart from a missing cookie
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import UnauthenticatedError
from app.db.session import get_db
from app.models.users import User


class CredentialStatus(str, Enum):
    VALID = "present-valid"
    INVALID = "present-invalid"
    ABSENT = "absent"


@dataclass(frozen=True)
class SessionCredential:
    status: CredentialStatus
    user_id: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.status == CredentialStatus.VALID


def parse_session_cookie(
    cookies: Mapping[str, str], cookie_name: Optional[str] = None
) -> SessionCredential:
    """
    Classify the session cookie.

    Args:
        cookies: Parsed request cookies (name -> value)
        cookie_name: Cookie to read, defaults to SESSION_COOKIE_NAME

    Returns:
        SessionCredential; user_id is the canonical UUID string when valid
    """
    raw = cookies.get(cookie_name or settings.SESSION_COOKIE_NAME)
    if raw is None:
        return SessionCredential(CredentialStatus.ABSENT)

    value = raw.strip()
    if not value:
        return SessionCredential(CredentialStatus.INVALID)
    try:
        user_id = str(uuid.UUID(value))
    except ValueError:
        return SessionCredential(CredentialStatus.INVALID)
    return SessionCredential(CredentialStatus.VALID, user_id)


class SessionResolver:
    def __init__(self, db: Session):
        self.db = db

    def resolve(self, credential: SessionCredential) -> User:
        if not credential.is_valid:
            raise UnauthenticatedError()
        user = self.db.get(User, credential.user_id)
        if user is None:
            raise UnauthenticatedError()
        return user


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Resolve the session cookie to a User or fail with 401."""
    credential = parse_session_cookie(request.cookies)
    return SessionResolver(db).resolve(credential)
