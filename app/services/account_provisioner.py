"""
handle new account registration in front of the identity authority

flow:
- validate every field locally, report all failures at once, no network call
- normalize (username trimmed + lower-cased, name trimmed, blank email dropped)
- one register call to the authority, never retried
- map uniqueness conflicts to field errors, anything else to UpstreamError

on success the authority has sent an OTP to the phone; verification happens
later through /api/auth/verify-otp
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional

from app.core.exceptions import FieldValidationError, UpstreamError
from app.services.identity_client import AuthorityErrorCode, IdentityApiError, IdentityAuthorityClient

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"[A-Za-z0-9_]+")
PHONE_PATTERN = re.compile(r"[0-9]{10}")
EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

PHONE_REQUIRED = "Phone number is required"
PHONE_INVALID = "Please enter a valid 10-digit phone number"

CONFLICT_ERRORS: Dict[AuthorityErrorCode, Dict[str, str]] = {
    AuthorityErrorCode.USERNAME_TAKEN: {"username": "This username is already taken"},
    AuthorityErrorCode.PHONE_TAKEN: {"phone": "This phone number is already registered"},
    AuthorityErrorCode.EMAIL_TAKEN: {"email": "This email is already registered"},
}


@dataclass
class RegistrationRequest:
    username: Optional[str] = None
    display_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


def phone_error(phone: Optional[str]) -> Optional[str]:
    """Return the user-facing message for a bad phone number, None if it is fine."""
    if not phone:
        return PHONE_REQUIRED
    if not PHONE_PATTERN.fullmatch(phone):
        return PHONE_INVALID
    return None


def validate_registration(request: RegistrationRequest) -> Dict[str, str]:
    errors: Dict[str, str] = {}

    username = (request.username or "").strip()
    if not username:
        errors["username"] = "Username is required"
    elif len(username) < 3:
        errors["username"] = "Username must be at least 3 characters"
    elif not USERNAME_PATTERN.fullmatch(username):
        errors["username"] = "Username can only contain letters, numbers, and underscores"

    name = (request.display_name or "").strip()
    if not name:
        errors["name"] = "Name is required"
    elif len(name) < 2:
        errors["name"] = "Name must be at least 2 characters"

    message = phone_error(request.phone)
    if message:
        errors["phone"] = message

    email = (request.email or "").strip()
    if email and not EMAIL_PATTERN.fullmatch(email):
        errors["email"] = "Please enter a valid email address"

    return errors


class AccountProvisioner:
    def __init__(self, identity: IdentityAuthorityClient):
        self.identity = identity

    def register(self, request: RegistrationRequest) -> None:
        errors = validate_registration(request)
        if errors:
            raise FieldValidationError(errors)

        username = request.username.strip().lower()
        display_name = request.display_name.strip()
        email = (request.email or "").strip() or None

        logger.info("creating account username=%s phone=***%s", username, request.phone[-4:])
        try:
            self.identity.register(username, display_name, request.phone, email)
        except IdentityApiError as exc:
            conflict = CONFLICT_ERRORS.get(exc.code)
            if conflict is not None:
                raise FieldValidationError(conflict) from exc
            raise UpstreamError(exc.message or "Failed to create account", exc.status_code) from exc

        logger.info("account created for username=%s, OTP sent", username)
