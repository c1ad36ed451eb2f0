import pytest
from fastapi import status
from fastapi.testclient import TestClient

from app.models.users import User
from tests.helpers import make_response

VALID_ACCOUNT = {"username": "ada_lovelace", "name": "Ada Lovelace", "phone": "5551234567"}


class TestCreateAccountAPI:
    """Test cases for POST /api/auth/create"""

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"username": "ab"}, "username"),
            ({"username": "a b"}, "username"),
            ({"phone": "12345"}, "phone"),
            ({"email": "not-an-email"}, "email"),
            ({"name": " "}, "name"),
        ],
    )
    def test_invalid_field_rejected_without_network_call(self, client: TestClient, identity, overrides, field):
        response = client.post("/api/auth/create", json={**VALID_ACCOUNT, **overrides})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert list(response.json()["errors"].keys()) == [field]
        assert identity.calls == []

    def test_all_field_errors_reported_together(self, client: TestClient, identity):
        response = client.post(
            "/api/auth/create",
            json={"username": "ab", "name": "", "phone": "12345", "email": "not-an-email"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert set(response.json()["errors"]) == {"username", "name", "phone", "email"}
        assert identity.calls == []

    def test_missing_body_fields_are_field_errors(self, client: TestClient, identity):
        response = client.post("/api/auth/create", json={})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["errors"] == {
            "username": "Username is required",
            "name": "Name is required",
            "phone": "Phone number is required",
        }
        assert identity.calls == []

    def test_create_success_normalizes_fields(self, client: TestClient, identity):
        response = client.post(
            "/api/auth/create",
            json={"username": "  Ada_Lovelace ", "name": "  Ada  ", "phone": "5551234567", "email": "   "},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"success": True, "message": "Account created. Verification code sent."}
        assert identity.calls == [
            (
                "register",
                {"username": "ada_lovelace", "display_name": "Ada", "phone": "5551234567", "email": None},
            )
        ]

    def test_username_taken_maps_to_username_error_only(self, client: TestClient, identity):
        identity.fail("register", 409, "USERNAME_TAKEN", "username exists")

        response = client.post("/api/auth/create", json=VALID_ACCOUNT)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"errors": {"username": "This username is already taken"}}
        assert len(identity.calls) == 1

    @pytest.mark.parametrize(
        "code, field",
        [("PHONE_TAKEN", "phone"), ("EMAIL_TAKEN", "email")],
    )
    def test_other_conflicts_map_to_their_field(self, client: TestClient, identity, code, field):
        identity.fail("register", 409, code)

        response = client.post("/api/auth/create", json={**VALID_ACCOUNT, "email": "ada@example.com"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert list(response.json()["errors"]) == [field]

    def test_unknown_code_passes_authority_message(self, client: TestClient, identity):
        identity.fail("register", 503, "MAINTENANCE", "Registration is paused")

        response = client.post("/api/auth/create", json=VALID_ACCOUNT)

        assert response.status_code == 503
        assert response.json() == {"error": "Registration is paused"}

    def test_unknown_code_without_message_uses_default(self, client: TestClient, identity):
        identity.fail("register", 500, "SOMETHING_NEW")

        response = client.post("/api/auth/create", json=VALID_ACCOUNT)

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to create account"}


class TestSendOtpAPI:
    """Test cases for POST /api/auth/send-otp"""

    def test_send_otp_success(self, client: TestClient, identity):
        response = client.post("/api/auth/send-otp", json={"phone": "5551234567"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"success": True, "message": "Verification code sent"}
        assert identity.calls == [("send_otp", {"phone": "5551234567"})]

    @pytest.mark.parametrize("body", [{}, {"phone": "555-123-4567"}, {"phone": "12345"}])
    def test_invalid_phone_rejected_locally(self, client: TestClient, identity, body):
        response = client.post("/api/auth/send-otp", json=body)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "error" in response.json()
        assert identity.calls == []

    def test_rate_limited_is_distinct_from_not_found(self, client: TestClient, identity):
        identity.fail("send_otp", 429, "RATE_LIMITED", "slow down")
        limited = client.post("/api/auth/send-otp", json={"phone": "5551234567"})

        identity.fail("send_otp", 404, "USER_NOT_FOUND", "no user")
        missing = client.post("/api/auth/send-otp", json={"phone": "5551234567"})

        assert limited.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert missing.status_code == status.HTTP_404_NOT_FOUND
        assert limited.json()["error"] == "Too many requests. Please wait before trying again."
        assert missing.json()["error"] == "No account found with this phone number. Please create an account."
        assert limited.json() != missing.json()

    def test_unknown_failure_passes_message(self, client: TestClient, identity):
        identity.fail("send_otp", 502, "GATEWAY", "SMS provider down")

        response = client.post("/api/auth/send-otp", json={"phone": "5551234567"})

        assert response.status_code == 502
        assert response.json() == {"error": "SMS provider down"}


class TestVerifyOtpAPI:
    """Test cases for POST /api/auth/verify-otp"""

    AUTHORITY_USER = {"user": {"id": 8812, "username": "ada_lovelace", "displayName": "Ada", "pfpUrl": None}}

    def test_verify_creates_user_and_sets_cookie(self, client: TestClient, identity):
        identity.results["verify_otp"] = self.AUTHORITY_USER

        response = client.post(
            "/api/auth/verify-otp",
            json={"phone": "5551234567", "code": "123456", "publicAddress": "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"},
        )

        assert response.status_code == status.HTTP_200_OK
        user = response.json()["user"]
        assert user["fid"] == "-8812"
        assert user["username"] == "ada_lovelace"
        assert user["displayName"] == "Ada"
        assert user["publicAddress"] == "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
        assert user["peopleUserId"] is None

        set_cookie = response.headers["set-cookie"]
        assert f"user_session={user['id']}" in set_cookie
        assert "HttpOnly" in set_cookie

        me = client.get("/api/user/me")
        assert me.status_code == status.HTTP_200_OK
        assert me.json()["user"]["id"] == user["id"]

    def test_verify_twice_reuses_local_user(self, client: TestClient, identity):
        identity.results["verify_otp"] = self.AUTHORITY_USER

        first = client.post("/api/auth/verify-otp", json={"phone": "5551234567", "code": "123456"})
        second = client.post("/api/auth/verify-otp", json={"phone": "5551234567", "code": "654321"})

        assert first.json()["user"]["id"] == second.json()["user"]["id"]

    def test_new_account_falls_back_to_form_data(self, client: TestClient, identity):
        identity.results["verify_otp"] = {"user": {"id": 9, "fid": 4242}}

        response = client.post(
            "/api/auth/verify-otp",
            json={
                "phone": "5551234567",
                "code": "123456",
                "isNewAccount": True,
                "userData": {"username": "grace", "name": "Grace Hopper"},
            },
        )

        user = response.json()["user"]
        assert user["fid"] == "4242"
        assert user["username"] == "grace"
        assert user["displayName"] == "Grace Hopper"

    @pytest.mark.parametrize(
        "code, expected_status, message",
        [
            ("INVALID_CODE", 400, "Invalid verification code"),
            ("CODE_EXPIRED", 400, "Verification code has expired. Please request a new one."),
            ("TOO_MANY_ATTEMPTS", 429, "Too many failed attempts. Please request a new code."),
        ],
    )
    def test_authority_errors_are_mapped(self, client: TestClient, identity, code, expected_status, message):
        identity.fail("verify_otp", 400, code)

        response = client.post("/api/auth/verify-otp", json={"phone": "5551234567", "code": "123456"})

        assert response.status_code == expected_status
        assert response.json() == {"error": message}
        assert "set-cookie" not in response.headers

    def test_bad_code_format_rejected_locally(self, client: TestClient, identity):
        response = client.post("/api/auth/verify-otp", json={"phone": "5551234567", "code": "12ab"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "Invalid verification code format"}
        assert identity.calls == []

    def test_sign_in_succeeds_when_directory_unconfigured(self, client: TestClient, identity, directory_http):
        identity.results["verify_otp"] = self.AUTHORITY_USER

        response = client.post(
            "/api/auth/verify-otp",
            json={"phone": "5551234567", "code": "123456", "publicAddress": "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["success"] is True
        directory_http.post.assert_not_called()

    def test_directory_id_stored_after_background_sync(
        self, client: TestClient, identity, directory, directory_http, db_session
    ):
        identity.results["verify_otp"] = self.AUTHORITY_USER
        directory.base_url = "https://people.example.com"
        directory.api_key = "people-key"
        directory_http.post.return_value = make_response(200, {"user": {"id": 42}, "created": True})

        response = client.post(
            "/api/auth/verify-otp",
            json={"phone": "5551234567", "code": "123456", "publicAddress": "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"},
        )

        assert response.status_code == status.HTTP_200_OK
        payload = directory_http.post.call_args.kwargs["json"]
        assert payload["publicAddress"] == "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
        assert payload["farcasterId"] == "-8812"

        db_session.expire_all()
        user = db_session.get(User, response.json()["user"]["id"])
        assert user.people_user_id == 42

    def test_directory_failure_does_not_fail_sign_in(self, client: TestClient, identity, directory, directory_http):
        identity.results["verify_otp"] = self.AUTHORITY_USER
        directory.base_url = "https://people.example.com"
        directory.api_key = "people-key"
        directory_http.post.return_value = make_response(400, {"error": "bad request"})

        response = client.post(
            "/api/auth/verify-otp",
            json={"phone": "5551234567", "code": "123456", "publicAddress": "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"},
        )

        assert response.status_code == status.HTTP_200_OK
        assert directory_http.post.call_count == 1

    def test_directory_sync_uses_address_of_signing_in_device(
        self, client: TestClient, identity, directory, directory_http, make_user
    ):
        make_user(fid="-8812", public_address="0x0000000000000000000000000000000000000001")
        identity.results["verify_otp"] = self.AUTHORITY_USER
        directory.base_url = "https://people.example.com"
        directory.api_key = "people-key"
        directory_http.post.return_value = make_response(200, {"user": {"id": 42}, "created": False})

        response = client.post(
            "/api/auth/verify-otp",
            json={"phone": "5551234567", "code": "123456", "publicAddress": "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"},
        )

        assert response.status_code == status.HTTP_200_OK
        payload = directory_http.post.call_args.kwargs["json"]
        assert payload["publicAddress"] == "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


class TestRequestBodyErrors:
    """Malformed bodies get the same {error} shape as every other failure"""

    def test_ill_typed_field_is_a_400(self, client: TestClient, identity):
        response = client.post("/api/auth/create", json={**VALID_ACCOUNT, "username": 123})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        body = response.json()
        assert list(body) == ["error"]
        assert body["error"].startswith("Invalid username")
        assert identity.calls == []

    def test_non_json_body_is_a_400(self, client: TestClient, identity):
        response = client.post(
            "/api/auth/send-otp", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "Invalid request body"}
        assert identity.calls == []


class TestLogoutAPI:
    def test_logout_expires_cookie(self, client: TestClient):
        response = client.post("/api/auth/logout")

        assert response.status_code == status.HTTP_200_OK
        set_cookie = response.headers["set-cookie"]
        assert "user_session=" in set_cookie
        assert "Max-Age=0" in set_cookie
