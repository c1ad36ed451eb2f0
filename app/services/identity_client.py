"""
Identity authority HTTP client.

Thin wrapper over the authority's auth endpoints:
    POST /v1/auth/register
    POST /v1/auth/send-otp
    POST /v1/auth/verify-otp

Failures come back as {"code": "...", "message": "..."}. The code is parsed
into AuthorityErrorCode; codes this service does not know become UNKNOWN and
are handled as generic upstream failures by the callers.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional

import requests

from app.core.config import settings
from app.core.exceptions import UpstreamError

logger = logging.getLogger(__name__)


class AuthorityErrorCode(str, Enum):
    USERNAME_TAKEN = "USERNAME_TAKEN"
    PHONE_TAKEN = "PHONE_TAKEN"
    EMAIL_TAKEN = "EMAIL_TAKEN"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    INVALID_CODE = "INVALID_CODE"
    CODE_EXPIRED = "CODE_EXPIRED"
    TOO_MANY_ATTEMPTS = "TOO_MANY_ATTEMPTS"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Any) -> "AuthorityErrorCode":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class IdentityApiError(Exception):
    """Non-success response from the identity authority."""

    def __init__(self, status_code: int, code: AuthorityErrorCode, message: Optional[str]):
        super().__init__(f"{status_code} {code.value}: {message}")
        self.status_code = status_code
        self.code = code
        self.message = message


class IdentityAuthorityClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        http: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()

    def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.http.post(url, json=body, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("identity authority unreachable: %s %s", path, type(exc).__name__)
            raise UpstreamError("Identity service is unavailable") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if not response.ok:
            code = AuthorityErrorCode.parse(data.get("code"))
            message = data.get("message") if isinstance(data.get("message"), str) else None
            logger.warning(
                "identity authority error on %s: status=%s code=%s", path, response.status_code, code.value
            )
            raise IdentityApiError(response.status_code, code, message)
        return data

    def register(self, username: str, display_name: str, phone: str, email: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"username": username, "displayName": display_name, "phone": phone}
        if email:
            body["email"] = email
        return self._post("/v1/auth/register", body)

    def send_otp(self, phone: str) -> Dict[str, Any]:
        return self._post("/v1/auth/send-otp", {"phone": phone})

    def verify_otp(self, phone: str, code: str) -> Dict[str, Any]:
        return self._post("/v1/auth/verify-otp", {"phone": phone, "code": code})


def get_identity_client() -> IdentityAuthorityClient:
    return IdentityAuthorityClient(settings.IDENTITY_API_URL, timeout=settings.HTTP_TIMEOUT_SECONDS)
