"""
Authentication tests.

Verifies:
- Password strength rules and bcrypt hashing
- Login / logout / me through bearer tokens
- Expired, revoked and inactive-user tokens are refused
"""

from datetime import timedelta

import pytest

from inventory_api.errors import DuplicateKey, ValidationFailed
from inventory_api.models import SessionToken
from inventory_api.services import auth_service, session_service
from inventory_api.services.auth_service import (
    PasswordValidationError,
    hash_password,
    validate_password_strength,
    verify_password,
)
from inventory_api.time_utils import utcnow

from conftest import TEST_PASSWORD, auth_headers, token_for


class TestPasswords:

    @pytest.mark.parametrize("password", [
        "Sh0rt!",
        "alllowercase1!",
        "ALLUPPERCASE1!",
        "NoDigitsHere!",
        "NoSpecial123",
    ])
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            validate_password_strength(password)

    def test_strong_password_accepted(self):
        validate_password_strength(TEST_PASSWORD)

    def test_weak_password_is_a_validation_error(self):
        with pytest.raises(ValidationFailed) as excinfo:
            validate_password_strength("weak")
        assert excinfo.value.errors[0]["field"] == "password"

    def test_hash_and_verify(self, password_hash):
        assert password_hash.startswith("$2")
        assert verify_password(TEST_PASSWORD, password_hash)
        assert not verify_password("Wrong123!", password_hash)

    def test_malformed_hash_never_matches(self):
        assert verify_password(TEST_PASSWORD, "not-a-bcrypt-hash") is False


class TestUsers:

    def test_create_user(self, db_session):
        user = auth_service.create_user("  newbie ", "NewBie@Example.com", TEST_PASSWORD, role="manager")
        assert user.username == "newbie"
        assert user.email == "newbie@example.com"
        assert user.role == "manager"
        assert user.password_hash != TEST_PASSWORD

    def test_duplicate_username(self, staff_user):
        with pytest.raises(DuplicateKey):
            auth_service.create_user("clerk", "other@example.com", TEST_PASSWORD)

    def test_unknown_role(self, db_session):
        with pytest.raises(ValidationFailed):
            auth_service.create_user("x", "x@example.com", TEST_PASSWORD, role="owner")

    def test_authenticate(self, staff_user):
        assert auth_service.authenticate("clerk", TEST_PASSWORD).id == staff_user.id
        assert auth_service.authenticate("clerk", "Wrong123!") is None
        assert auth_service.authenticate("nobody", TEST_PASSWORD) is None

    def test_inactive_user_cannot_authenticate(self, db_session, staff_user):
        staff_user.is_active = False
        db_session.commit()
        assert auth_service.authenticate("clerk", TEST_PASSWORD) is None


class TestSessions:

    def test_token_is_stored_hashed(self, db_session, staff_user):
        session, token = session_service.create_session(staff_user)
        assert session.token_hash == session_service.hash_token(token)
        assert session.token_hash != token
        assert session_service.validate_session(token).user.id == staff_user.id

    def test_expired(self, db_session, staff_user):
        session, token = session_service.create_session(staff_user)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()
        assert session_service.validate_session(token) is None

    def test_revoked(self, db_session, staff_user):
        _, token = session_service.create_session(staff_user)
        assert session_service.revoke_session(token) is True
        assert session_service.revoke_session(token) is False
        assert session_service.validate_session(token) is None

    def test_inactive_user(self, db_session, staff_user):
        token = token_for(staff_user)
        staff_user.is_active = False
        db_session.commit()
        assert session_service.validate_session(token) is None

    def test_empty_token(self, db_session):
        assert session_service.validate_session("") is None


class TestAuthRoutes:

    def test_login_me_logout(self, client, staff_user):
        login = client.post("/api/auth/login", json={"username": "clerk", "password": TEST_PASSWORD})

        assert login.status_code == 200
        data = login.get_json()["data"]
        assert data["user"]["username"] == "clerk"
        assert data["expires_at"].endswith("Z")
        headers = auth_headers(data["token"])

        me = client.get("/api/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.get_json()["data"]["role"] == "staff"

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_bad_credentials(self, client, staff_user):
        response = client.post("/api/auth/login", json={"username": "clerk", "password": "Wrong123!"})
        assert response.status_code == 401
        assert response.get_json() == {"success": False, "message": "Invalid credentials"}

    def test_form_login(self, client, staff_user):
        response = client.post("/api/auth/login", data={"username": "clerk", "password": TEST_PASSWORD})
        assert response.status_code == 200

    def test_last_login_recorded(self, client, db_session, staff_user):
        client.post("/api/auth/login", json={"username": "clerk", "password": TEST_PASSWORD})
        db_session.refresh(staff_user)
        assert staff_user.last_login_at is not None
        assert db_session.query(SessionToken).filter_by(user_id=staff_user.id).count() == 1
