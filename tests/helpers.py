from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import Mock

from app.core.exceptions import BlobStorageError
from app.services.identity_client import AuthorityErrorCode, IdentityApiError


def make_response(status_code: int, body: Any = None) -> Mock:
    """Mock of a requests.Response with the attributes the clients use"""
    response = Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body if body is not None else {}
    return response


class StubIdentityClient:
    """Identity authority stand-in that records every call"""

    def __init__(self):
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.errors: Dict[str, IdentityApiError] = {}
        self.results: Dict[str, Dict[str, Any]] = {}

    def fail(self, method: str, status_code: int, code: str, message: Optional[str] = None) -> None:
        self.errors[method] = IdentityApiError(status_code, AuthorityErrorCode.parse(code), message)

    def _call(self, method: str, **kwargs) -> Dict[str, Any]:
        self.calls.append((method, kwargs))
        if method in self.errors:
            raise self.errors[method]
        return self.results.get(method, {"success": True})

    def register(self, username, display_name, phone, email=None):
        return self._call("register", username=username, display_name=display_name, phone=phone, email=email)

    def send_otp(self, phone):
        return self._call("send_otp", phone=phone)

    def verify_otp(self, phone, code):
        return self._call("verify_otp", phone=phone, code=code)


class StubBlobStore:
    """Blob store stand-in; set error to make every upload fail"""

    def __init__(self, url: str = "https://cdn.example.com/profile-pictures/new.png"):
        self.url = url
        self.error: Optional[str] = None
        self.uploads: List[Tuple[str, Optional[str]]] = []

    def upload_profile_image(self, payload: str, user_id: Optional[str] = None) -> str:
        self.uploads.append((payload, user_id))
        if self.error:
            raise BlobStorageError(self.error)
        return self.url
