# Overview: Pytest coverage for password hashing, user creation and session tokens.

from datetime import timedelta

import pytest

from conftest import PASSWORD
from gestao.models import SessionToken
from gestao.services import auth_service, session_service
from gestao.services.auth_service import PasswordValidationError


class TestPasswords:

    @pytest.mark.parametrize("password", ["short1!", "alllowercase1!", "ALLUPPER1!", "NoDigits!!", "NoSpecial123"])
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_verify_password(self, password_hash):
        assert auth_service.verify_password(PASSWORD, password_hash)
        assert not auth_service.verify_password("Wrong123!", password_hash)
        assert not auth_service.verify_password(PASSWORD, "not-a-bcrypt-hash")


class TestUsers:

    def test_username_unique_per_org_only(self, db_session, org_a, org_b):
        auth_service.create_user("caixa", "caixa@a.com", PASSWORD, org_a.id)
        auth_service.create_user("caixa", "caixa@b.com", PASSWORD, org_b.id)

        with pytest.raises(ValueError, match="already exists"):
            auth_service.create_user("caixa", "other@a.com", PASSWORD, org_a.id)

    def test_authenticate(self, db_session, user_a):
        assert auth_service.authenticate("user_a", PASSWORD).id == user_a.id
        assert auth_service.authenticate("user_a@example.com", PASSWORD).id == user_a.id
        assert auth_service.authenticate("user_a", "Wrong123!") is None

    def test_inactive_org_cannot_authenticate(self, db_session, org_a, user_a):
        org_a.is_active = False
        db_session.commit()
        assert auth_service.authenticate("user_a", PASSWORD) is None

    def test_inactive_org_cannot_get_new_users(self, db_session, org_a):
        org_a.is_active = False
        db_session.commit()

        with pytest.raises(ValueError, match="not active"):
            auth_service.create_user("caixa", "caixa@a.com", PASSWORD, org_a.id)

    def test_unknown_org_cannot_get_new_users(self, db_session):
        with pytest.raises(ValueError, match="Organization not found"):
            auth_service.create_user("caixa", "caixa@a.com", PASSWORD, 9999)


class TestSessions:

    def test_token_is_stored_hashed(self, db_session, user_a):
        session, token = session_service.create_session(user_a.id)
        assert session.token_hash == session_service.hash_token(token)
        assert session.token_hash != token

    def test_validate_returns_tenant_context(self, db_session, org_a, user_a):
        _, token = session_service.create_session(user_a.id)
        context = session_service.validate_session(token)
        assert context.user.id == user_a.id
        assert context.org_id == org_a.id

    def test_revoked_token_is_invalid(self, db_session, user_a):
        _, token = session_service.create_session(user_a.id)
        assert session_service.revoke_session(token)
        assert session_service.validate_session(token) is None
        assert not session_service.revoke_session(token)

    def test_idle_session_is_revoked(self, db_session, user_a):
        session, token = session_service.create_session(user_a.id)
        session.last_used_at = session.last_used_at - timedelta(hours=3)
        db_session.commit()

        assert session_service.validate_session(token) is None
        assert db_session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_cleanup_removes_old_revoked_sessions(self, db_session, user_a):
        session, token = session_service.create_session(user_a.id)
        session.created_at = session.created_at - timedelta(days=40)
        db_session.commit()
        session_service.revoke_session(token)

        assert session_service.cleanup_expired_sessions() == 1
        assert db_session.query(SessionToken).count() == 0
