"""
Password hashing, user creation and session token tests.
"""

from datetime import timedelta

import pytest

from posledger.errors import ConflictError, ValidationError
from posledger.models import SessionToken
from posledger.services import auth_service, session_service
from posledger.services.auth_service import PasswordValidationError


class TestPasswords:

    @pytest.mark.parametrize(
        "password",
        ["Short1!", "alllowercase1!", "ALLUPPERCASE1!", "NoDigitsHere!", "NoSpecial123"],
    )
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_hash_and_verify(self):
        hashed = auth_service.hash_password("Password123!", rounds=4)
        assert hashed != "Password123!"
        assert auth_service.verify_password("Password123!", hashed)
        assert not auth_service.verify_password("Password123?", hashed)

    def test_malformed_hash_never_verifies(self):
        assert not auth_service.verify_password("Password123!", "not-a-bcrypt-hash")


class TestCreateUser:

    def test_create_and_authenticate(self, db_session):
        user = auth_service.create_user("ngozi", "ngozi@shop.test", "Password123!", role="manager", rounds=4)
        assert user.role == "manager"

        authed = auth_service.authenticate("ngozi", "Password123!")
        assert authed.id == user.id
        assert authed.last_login_at is not None
        assert auth_service.authenticate("ngozi", "nope") is None

    def test_duplicate(self, db_session):
        auth_service.create_user("ngozi", "ngozi@shop.test", "Password123!", rounds=4)
        with pytest.raises(ConflictError):
            auth_service.create_user("ngozi", "other@shop.test", "Password123!", rounds=4)

    def test_bad_role(self, db_session):
        with pytest.raises(ValidationError):
            auth_service.create_user("x", "x@shop.test", "Password123!", role="owner", rounds=4)

    def test_inactive_user_cannot_authenticate(self, db_session, cashier_user):
        cashier_user.is_active = False
        db_session.commit()
        assert auth_service.authenticate("cashier", "Password123!") is None


class TestSessions:

    def test_validate_and_revoke(self, db_session, cashier_user):
        _, token = session_service.create_session(cashier_user.id)
        assert session_service.validate_session(token).id == cashier_user.id

        assert session_service.revoke_session(token) is True
        assert session_service.validate_session(token) is None
        assert session_service.revoke_session(token) is False

    def test_expired(self, db_session, cashier_user):
        session, token = session_service.create_session(cashier_user.id)
        session.expires_at = session.created_at - timedelta(seconds=1)
        db_session.commit()
        assert session_service.validate_session(token) is None

    def test_lifetime_from_config(self, app, db_session, cashier_user):
        session, _ = session_service.create_session(cashier_user.id)
        lifetime = session.expires_at - session.created_at
        assert lifetime == timedelta(hours=app.config["SESSION_HOURS"])

    def test_token_not_stored(self, db_session, cashier_user):
        _, token = session_service.create_session(cashier_user.id)
        assert db_session.query(SessionToken).filter_by(token_hash=token).first() is None
        assert db_session.query(SessionToken).filter_by(token_hash=session_service.hash_token(token)).one()
