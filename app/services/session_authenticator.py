"""
handle OTP sign-in for returning users

request_otp():
- validate the phone locally, then one send-otp call to the authority
- USER_NOT_FOUND -> 404 "register instead", RATE_LIMITED -> 429 "wait and retry"

verify_otp() + sign_in():
- the authority checks the code; this module only validates the shape
- on success the local user is fetched or created by fid and the caller sets
  the session cookie
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Type

from sqlalchemy.orm import Session

from app.core.exceptions import (
    IdentityServiceError,
    InvalidInputError,
    NotFoundError,
    RateLimitedError,
    UpstreamError,
)
from app.models.users import User
from app.services.account_provisioner import phone_error
from app.services.identity_client import AuthorityErrorCode, IdentityApiError, IdentityAuthorityClient
from app.services.local_users import get_or_create_user_by_fid, set_public_address

logger = logging.getLogger(__name__)

OTP_CODE_PATTERN = re.compile(r"[0-9]{6}")

SEND_OTP_ERRORS: Dict[AuthorityErrorCode, Tuple[Type[IdentityServiceError], str]] = {
    AuthorityErrorCode.USER_NOT_FOUND: (
        NotFoundError, "No account found with this phone number. Please create an account."
    ),
    AuthorityErrorCode.RATE_LIMITED: (
        RateLimitedError, "Too many requests. Please wait before trying again."
    ),
}

VERIFY_OTP_ERRORS: Dict[AuthorityErrorCode, Tuple[Type[IdentityServiceError], str]] = {
    AuthorityErrorCode.INVALID_CODE: (InvalidInputError, "Invalid verification code"),
    AuthorityErrorCode.CODE_EXPIRED: (
        InvalidInputError, "Verification code has expired. Please request a new one."
    ),
    AuthorityErrorCode.TOO_MANY_ATTEMPTS: (
        RateLimitedError, "Too many failed attempts. Please request a new code."
    ),
}


@dataclass
class NewAccountData:
    """Form data kept by the client between /create and /verify-otp."""

    username: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None


def _mapped_error(
    table: Dict[AuthorityErrorCode, Tuple[Type[IdentityServiceError], str]],
    exc: IdentityApiError,
    fallback: str,
) -> IdentityServiceError:
    mapped = table.get(exc.code)
    if mapped is not None:
        error_class, message = mapped
        return error_class(message)
    return UpstreamError(exc.message or fallback, exc.status_code)


class SessionAuthenticator:
    def __init__(self, identity: IdentityAuthorityClient):
        self.identity = identity

    def request_otp(self, phone: Optional[str]) -> None:
        message = phone_error(phone)
        if message:
            raise InvalidInputError(message)

        logger.info("sending OTP to phone=***%s", phone[-4:])
        try:
            self.identity.send_otp(phone)
        except IdentityApiError as exc:
            raise _mapped_error(SEND_OTP_ERRORS, exc, "Failed to send verification code") from exc
        logger.info("OTP sent to phone=***%s", phone[-4:])

    def verify_otp(self, phone: Optional[str], code: Optional[str]) -> Dict[str, Any]:
        """Verify the code with the authority and return its user object."""
        if not phone:
            raise InvalidInputError("Phone number is required")
        if not code:
            raise InvalidInputError("Verification code is required")
        if not OTP_CODE_PATTERN.fullmatch(code):
            raise InvalidInputError("Invalid verification code format")

        logger.info("verifying OTP for phone=***%s", phone[-4:])
        try:
            data = self.identity.verify_otp(phone, code)
        except IdentityApiError as exc:
            raise _mapped_error(VERIFY_OTP_ERRORS, exc, "Failed to verify code") from exc

        authority_user = data.get("user")
        if not isinstance(authority_user, dict) or authority_user.get("id") is None:
            logger.error("identity authority returned no user for a verified code")
            raise UpstreamError("Failed to verify code")
        return authority_user

    def sign_in(
        self,
        db: Session,
        authority_user: Dict[str, Any],
        account_data: Optional[NewAccountData] = None,
        public_address: Optional[str] = None,
    ) -> User:
        """Get or create the local user for a verified authority account."""
        account_data = account_data or NewAccountData()
        authority_id = str(authority_user["id"])
        # negative fid marks accounts that have no Farcaster fid of their own
        fid = str(authority_user.get("fid") or f"-{authority_id}")

        user = get_or_create_user_by_fid(
            db,
            fid,
            renaissance_user_id=authority_id,
            username=authority_user.get("username") or account_data.username,
            display_name=authority_user.get("displayName") or account_data.name,
            pfp_url=authority_user.get("pfpUrl"),
            public_address=public_address,
        )
        if public_address and not user.public_address:
            user = set_public_address(db, user, public_address)

        logger.info("local user %s signed in (fid=%s)", user.id, user.fid)
        return user
