"""
Error taxonomy for the identity service.

Every error a route can produce on purpose derives from IdentityServiceError.
The exception handlers registered in main.py turn them into JSON bodies:

- FieldValidationError  -> 400 {"errors": {"field": "message"}}
- everything else       -> <status_code> {"error": "message"}

Transport exceptions from outbound clients are converted into UpstreamError
before they leave app.services, so raw requests exceptions never reach a
response.
"""

from typing import Any, Dict

from fastapi import status


class IdentityServiceError(Exception):
    """Base class for errors that map to a client-facing response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_content(self) -> Dict[str, Any]:
        return {"error": self.message}


class FieldValidationError(IdentityServiceError):
    """One or more request fields are invalid or already taken upstream."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, errors: Dict[str, str]):
        super().__init__("Invalid fields: " + ", ".join(sorted(errors)))
        self.errors = dict(errors)

    def to_content(self) -> Dict[str, Any]:
        return {"errors": self.errors}


class InvalidInputError(IdentityServiceError):
    """A single request value was rejected before any network call."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(IdentityServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class RateLimitedError(IdentityServiceError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class UpstreamError(IdentityServiceError):
    """A downstream service failed or could not be reached."""

    status_code = status.HTTP_502_BAD_GATEWAY


class BlobStorageError(UpstreamError):
    """Profile image could not be validated or stored."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthenticatedError(IdentityServiceError):
    """Missing, malformed or stale session. The body never says which."""

    status_code = status.HTTP_401_UNAUTHORIZED
    MESSAGE = "Not authenticated"

    def __init__(self):
        super().__init__(self.MESSAGE)
