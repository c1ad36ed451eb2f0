from unittest.mock import Mock

import pytest
import requests

from app.core.exceptions import UpstreamError
from app.services.identity_client import AuthorityErrorCode, IdentityApiError, IdentityAuthorityClient
from tests.helpers import make_response


@pytest.fixture
def http() -> Mock:
    return Mock(spec=requests.Session)


@pytest.fixture
def authority(http) -> IdentityAuthorityClient:
    return IdentityAuthorityClient("https://id.example.com/", timeout=4, http=http)


class TestIdentityAuthorityClient:
    def test_register_omits_blank_email(self, authority, http):
        http.post.return_value = make_response(200, {"success": True})

        assert authority.register("ada", "Ada", "5551234567") == {"success": True}
        http.post.assert_called_once_with(
            "https://id.example.com/v1/auth/register",
            json={"username": "ada", "displayName": "Ada", "phone": "5551234567"},
            timeout=4,
        )

    def test_error_code_is_parsed(self, authority, http):
        http.post.return_value = make_response(409, {"code": "PHONE_TAKEN", "message": "taken"})

        with pytest.raises(IdentityApiError) as exc_info:
            authority.register("ada", "Ada", "5551234567", "ada@example.com")

        assert exc_info.value.status_code == 409
        assert exc_info.value.code == AuthorityErrorCode.PHONE_TAKEN
        assert exc_info.value.message == "taken"

    def test_unrecognized_code_becomes_unknown(self, authority, http):
        http.post.return_value = make_response(400, {"code": "SOMETHING_NEW"})

        with pytest.raises(IdentityApiError) as exc_info:
            authority.send_otp("5551234567")

        assert exc_info.value.code == AuthorityErrorCode.UNKNOWN
        assert exc_info.value.message is None

    def test_non_json_error_body(self, authority, http):
        http.post.return_value = make_response(502, ValueError("not json"))

        with pytest.raises(IdentityApiError) as exc_info:
            authority.verify_otp("5551234567", "123456")

        assert exc_info.value.code == AuthorityErrorCode.UNKNOWN
        assert exc_info.value.status_code == 502

    def test_unreachable_authority(self, authority, http):
        http.post.side_effect = requests.ConnectionError("refused")

        with pytest.raises(UpstreamError) as exc_info:
            authority.send_otp("5551234567")

        assert exc_info.value.status_code == 502
        assert exc_info.value.message == "Identity service is unavailable"

    def test_parse(self):
        assert AuthorityErrorCode.parse("RATE_LIMITED") == AuthorityErrorCode.RATE_LIMITED
        assert AuthorityErrorCode.parse(None) == AuthorityErrorCode.UNKNOWN
