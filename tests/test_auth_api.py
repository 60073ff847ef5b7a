from unittest.mock import MagicMock, patch

import pytest

import dependencies
from dependencies import get_auth_service
from services.auth_service import AuthServiceError, SupabaseAuthService

SIGNUP = {
    "email": "Ada@Example.com ",
    "password": "correct-horse",
    "firstName": "Ada",
    "lastName": "Lovelace",
    "dateOfBirth": "1815-12-10",
}

VERIFIED_USER = {"id": "u1", "email": "ada@example.com", "email_confirmed_at": "2025-01-01T00:00:00Z"}
UNVERIFIED_USER = {"id": "u1", "email": "ada@example.com", "email_confirmed_at": None}


@pytest.fixture
def auth(app):
    service = MagicMock(spec=SupabaseAuthService)
    app.dependency_overrides[get_auth_service] = lambda: service
    return service


@pytest.fixture(autouse=True)
def no_trigger_wait():
    with patch("routes.auth.time.sleep") as sleep:
        yield sleep


class TestSignup:

    @pytest.mark.parametrize("missing, error", [
        ("email", "Email and password are required"),
        ("password", "Email and password are required"),
        ("firstName", "First name and last name are required"),
        ("lastName", "First name and last name are required"),
        ("dateOfBirth", "Date of birth is required"),
    ])
    def test_required_fields(self, client, auth, missing, error):
        body = {k: v for k, v in SIGNUP.items() if k != missing}
        r = client.post("/api/auth/signup", json=body)
        assert r.status_code == 400
        assert r.json() == {"success": False, "error": error}
        auth.sign_up.assert_not_called()

    def test_bad_email(self, client, auth):
        r = client.post("/api/auth/signup", json={**SIGNUP, "email": "ada@example"})
        assert r.status_code == 400
        assert r.json()["error"] == "Please enter a valid email address"

    def test_short_password(self, client, auth):
        r = client.post("/api/auth/signup", json={**SIGNUP, "password": "short"})
        assert r.status_code == 400
        assert r.json()["error"] == "Password must be at least 8 characters"

    def test_already_registered(self, client, auth):
        auth.sign_up.side_effect = AuthServiceError(422, "User already registered")
        r = client.post("/api/auth/signup", json=SIGNUP)
        assert r.status_code == 400
        assert r.json()["error"] == "This email is already registered. Please sign in instead."

    def test_pending_confirmation_creates_profile(self, client, auth, no_trigger_wait):
        auth.sign_up.return_value = (UNVERIFIED_USER, None)
        auth.get_profile.side_effect = [None, {"id": "u1", "name": "Ada Lovelace", "firstName": "Ada"}]

        r = client.post("/api/auth/signup", json=SIGNUP)

        assert r.status_code == 200
        body = r.json()
        assert body["needsEmailConfirmation"] is True
        assert body["session"] is None
        assert body["message"] == "Account created! Please check your email to confirm your account."
        assert body["user"]["name"] == "Ada Lovelace"
        assert body["user"]["lastName"] == "Lovelace"
        assert body["user"]["emailVerified"] is False

        email, password, metadata = auth.sign_up.call_args.args
        assert email == "ada@example.com"
        assert metadata["dateOfBirth"] == "1815-12-10"
        auth.insert_profile.assert_called_once()
        assert auth.insert_profile.call_args.args[0]["id"] == "u1"
        no_trigger_wait.assert_called_once_with(0.5)

    def test_existing_profile_updated(self, client, auth):
        session = {"access_token": "tok", "user": VERIFIED_USER}
        auth.sign_up.return_value = (VERIFIED_USER, session)
        auth.get_profile.return_value = {"id": "u1", "name": "Ada", "firstName": None}

        body = client.post("/api/auth/signup", json=SIGNUP).json()

        auth.update_profile.assert_called_once_with(
            "u1", {"firstName": "Ada", "lastName": "Lovelace", "dateOfBirth": "1815-12-10"}
        )
        assert body["needsEmailConfirmation"] is False
        assert body["message"] == "Account created successfully!"
        assert body["user"]["emailVerified"] is True


class TestLogin:

    def test_required(self, client, auth):
        r = client.post("/api/auth/login", json={"email": "ada@example.com"})
        assert r.status_code == 400

    def test_bad_credentials(self, client, auth):
        auth.sign_in.side_effect = AuthServiceError(400, "Invalid login credentials")
        r = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "nope-nope"})
        assert r.status_code == 401
        assert r.json() == {"success": False, "error": "Invalid login credentials"}

    def test_unverified_email(self, client, auth):
        auth.sign_in.return_value = {"access_token": "tok", "user": UNVERIFIED_USER}
        r = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "correct-horse"})
        assert r.status_code == 403
        assert r.json()["needsEmailVerification"] is True
        assert r.json()["success"] is False

    def test_login(self, client, auth):
        auth.sign_in.return_value = {"access_token": "tok", "user": VERIFIED_USER}
        auth.get_profile.return_value = None
        r = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "correct-horse"})
        assert r.status_code == 200
        body = r.json()
        assert body["session"]["access_token"] == "tok"
        assert body["user"]["name"] == "ada"
        assert body["user"]["emailVerified"] is True


class TestTokenEndpoints:

    def test_logout_revokes_token(self, client, auth):
        r = client.post("/api/auth/logout", headers={"Authorization": "Bearer tok"})
        assert r.json() == {"success": True, "message": "Logged out successfully"}
        auth.sign_out.assert_called_once_with("tok")

    def test_logout_without_token(self, client, auth):
        assert client.post("/api/auth/logout").json()["success"] is True
        auth.sign_out.assert_not_called()

    def test_verify_status_requires_token(self, client, auth):
        r = client.get("/api/auth/verify-status")
        assert r.status_code == 401
        assert r.json() == {"verified": False, "error": "Authorization token required"}

    def test_verify_status_invalid_token(self, client, auth):
        auth.get_user.side_effect = AuthServiceError(401, "Invalid token")
        r = client.get("/api/auth/verify-status", headers={"Authorization": "Bearer bad"})
        assert r.status_code == 401
        assert r.json() == {"verified": False, "error": "Invalid token"}

    def test_verify_status(self, client, auth):
        auth.get_user.return_value = VERIFIED_USER
        r = client.get("/api/auth/verify-status", headers={"Authorization": "Bearer tok"})
        assert r.json() == {"verified": True}

    def test_me(self, client, auth):
        auth.get_user.return_value = VERIFIED_USER
        auth.get_profile.return_value = {"name": "Ada Lovelace"}
        r = client.get("/api/auth/me", headers={"Authorization": "Bearer tok"})
        assert r.json() == {"success": True, "user": {"id": "u1", "email": "ada@example.com", "name": "Ada Lovelace"}}

    def test_me_without_token(self, client, auth):
        r = client.get("/api/auth/me")
        assert r.status_code == 401
        assert r.json()["error"] == "No token provided"


class TestVerificationAndPasswords:

    def test_resend_needs_token_or_email(self, client, auth):
        r = client.post("/api/auth/resend-verification", json={})
        assert r.status_code == 404
        assert r.json()["error"] == "Authorization token or email required"

    def test_resend_unknown_email(self, client, auth):
        auth.find_user_by_email.return_value = None
        r = client.post("/api/auth/resend-verification", json={"email": "ghost@example.com"})
        assert r.status_code == 404
        assert r.json()["error"] == "No account found with this email address"

    def test_resend_already_verified(self, client, auth):
        auth.find_user_by_email.return_value = VERIFIED_USER
        r = client.post("/api/auth/resend-verification", json={"email": "ada@example.com"})
        assert r.json() == {"success": True, "message": "Email is already verified"}
        auth.resend_signup.assert_not_called()

    def test_resend_by_token(self, client, auth):
        auth.get_user.return_value = UNVERIFIED_USER
        r = client.post("/api/auth/resend-verification", headers={"Authorization": "Bearer tok"})
        assert r.json() == {"success": True, "message": "Verification email sent successfully"}
        auth.resend_signup.assert_called_once_with("ada@example.com")

    def test_forgot_password_never_reveals_accounts(self, client, auth):
        auth.recover.side_effect = AuthServiceError(404, "User not found")
        r = client.post("/api/auth/forgot-password", json={"email": "Ghost@Example.com"})
        assert r.status_code == 200
        assert r.json()["message"] == "If an account exists with this email, a password reset link has been sent."
        assert auth.recover.call_args.args[0] == "ghost@example.com"

    def test_forgot_password_validates_email(self, client, auth):
        assert client.post("/api/auth/forgot-password", json={}).json()["error"] == "Email is required"
        assert client.post("/api/auth/forgot-password", json={"email": "nope"}).status_code == 400

    def test_reset_password_invalid_token(self, client, auth):
        auth.get_user.side_effect = AuthServiceError(401, "Invalid token")
        r = client.post("/api/auth/reset-password", json={"token": "bad", "password": "new-password"})
        assert r.status_code == 401
        assert r.json()["error"] == "Invalid or expired reset token. Please request a new password reset."

    def test_reset_password(self, client, auth):
        auth.get_user.return_value = VERIFIED_USER
        r = client.post("/api/auth/reset-password", json={"token": "tok", "password": "new-password"})
        assert r.json() == {"success": True, "message": "Password has been reset successfully"}
        auth.update_user_password.assert_called_once_with("u1", "new-password")

    def test_reset_password_short(self, client, auth):
        r = client.post("/api/auth/reset-password", json={"token": "tok", "password": "short"})
        assert r.status_code == 400


class TestNotConfigured:

    def test_missing_supabase_settings(self, client, monkeypatch):
        monkeypatch.setattr(dependencies.settings, "SUPABASE_URL", "")
        r = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "correct-horse"})
        assert r.status_code == 500
        assert r.json()["error"].startswith("Supabase is not configured")
