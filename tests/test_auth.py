"""
Tests for the auth component: registration, login, tokens and passwords.
"""

import jwt
import pytest

from activity_tracker.components.auth import hash_password, verify_password
from activity_tracker.core.errors import AuthenticationError, ConflictError, NotFoundError
from activity_tracker.core.events import EventType


class TestPasswordHashing:
    def test_round_trip(self):
        hashed = hash_password("hunter22")

        assert hashed != "hunter22"
        assert verify_password("hunter22", hashed)
        assert not verify_password("hunter23", hashed)

    def test_salted(self):
        assert hash_password("same") != hash_password("same")

    @pytest.mark.parametrize("stored", ["", "no-separator", None])
    def test_malformed_hash_never_verifies(self, stored):
        assert verify_password("anything", stored) is False


# =============================================================================
# Registration and login
# =============================================================================


class TestRegistration:
    @pytest.mark.asyncio
    async def test_register_publishes_user_created(self, app, record):
        recorder = record(EventType.USER_CREATED)

        user = app.auth.register_user("carol", "Carol@Example.com", "secret123")

        assert user.username == "carol"
        assert user.email == "carol@example.com"
        (payload,) = recorder.of(EventType.USER_CREATED)
        assert payload.user_id == user.id
        assert payload.email == "carol@example.com"

    @pytest.mark.asyncio
    async def test_duplicate_username(self, app, user_id):
        with pytest.raises(ConflictError, match="Username already registered"):
            app.auth.register_user("alice", "other@example.com", "password123")

    @pytest.mark.asyncio
    async def test_duplicate_email(self, app, user_id):
        with pytest.raises(ConflictError, match="Email already registered"):
            app.auth.register_user("alice2", "ALICE@example.com", "password123")

    @pytest.mark.asyncio
    async def test_password_hash_is_stored_not_password(self, app, user_id):
        row = app.db.query("SELECT password_hash FROM users WHERE user_id = ?", (user_id,)).first()
        assert "password123" not in row["password_hash"]


class TestLogin:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("login", ["alice", "alice@example.com", "Alice@Example.com"])
    async def test_login_by_username_or_email(self, app, user_id, login):
        response = app.auth.login_user(login, "password123")

        assert response.token_type == "bearer"
        assert response.user.id == user_id
        assert response.user.last_login is not None
        assert app.auth.verify_token(response.access_token).id == user_id

    @pytest.mark.asyncio
    async def test_token_subject_is_user_id(self, app, settings, user_id):
        token = app.auth.login_user("alice", "password123").access_token

        claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])

        assert claims["sub"] == str(user_id)
        assert claims["jti"]

    @pytest.mark.asyncio
    async def test_wrong_password(self, app, record, user_id):
        recorder = record(EventType.USER_LOGIN)

        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            app.auth.login_user("alice", "wrong-password")
        assert recorder.events == []

    @pytest.mark.asyncio
    async def test_unknown_user(self, app):
        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            app.auth.login_user("nobody", "password123")

    @pytest.mark.asyncio
    async def test_get_unknown_user(self, app):
        with pytest.raises(NotFoundError):
            app.auth.get_user_by_id(404)


# =============================================================================
# Tokens
# =============================================================================


class TestTokens:
    @pytest.mark.asyncio
    async def test_garbage_token(self, app):
        with pytest.raises(AuthenticationError, match="Invalid token"):
            app.auth.verify_token("not-a-jwt")

    @pytest.mark.asyncio
    async def test_token_signed_with_other_key(self, app, user_id):
        forged = jwt.encode(
            {"sub": str(user_id), "exp": 4102444800, "iat": 0, "jti": "x"},
            "a-completely-different-secret-key-of-length",
            algorithm="HS256",
        )
        with pytest.raises(AuthenticationError):
            app.auth.verify_token(forged)

    @pytest.mark.asyncio
    async def test_expired_token(self, app, settings, user_id):
        settings.jwt_access_token_expire_minutes = -1
        token = app.auth.create_access_token(user_id)

        with pytest.raises(AuthenticationError, match="expired"):
            app.auth.verify_token(token)

    @pytest.mark.asyncio
    async def test_logout_revokes_only_that_token(self, app, record, user_id):
        recorder = record(EventType.USER_LOGOUT)
        first = app.auth.login_user("alice", "password123").access_token
        second = app.auth.login_user("alice", "password123").access_token

        assert app.auth.logout_user(first) is True

        with pytest.raises(AuthenticationError, match="revoked"):
            app.auth.verify_token(first)
        assert app.auth.verify_token(second).id == user_id
        assert recorder.of(EventType.USER_LOGOUT)[0].user_id == user_id

    @pytest.mark.asyncio
    async def test_token_for_deleted_user(self, app, user_id):
        token = app.auth.create_access_token(user_id)
        app.db.query("DELETE FROM users WHERE user_id = ?", (user_id,))

        with pytest.raises(AuthenticationError, match="no longer exists"):
            app.auth.verify_token(token)


# =============================================================================
# Passwords
# =============================================================================


class TestPasswords:
    @pytest.mark.asyncio
    async def test_change_password(self, app, user_id):
        app.auth.change_password(user_id, "password123", "new-password")

        with pytest.raises(AuthenticationError):
            app.auth.login_user("alice", "password123")
        assert app.auth.login_user("alice", "new-password").user.id == user_id

    @pytest.mark.asyncio
    async def test_change_password_requires_current(self, app, user_id):
        with pytest.raises(AuthenticationError, match="Current password is incorrect"):
            app.auth.change_password(user_id, "guess", "new-password")

    @pytest.mark.asyncio
    async def test_reset_flow(self, app, record, user_id):
        recorder = record(EventType.USER_PASSWORD_RESET_REQUESTED, EventType.USER_PASSWORD_RESET)

        token = app.auth.request_password_reset("alice@example.com")
        assert app.auth.reset_password(token, "reset-password") is True

        assert app.auth.login_user("alice", "reset-password").user.id == user_id
        assert [name for name, _ in recorder.events] == [
            "user:password_reset_requested",
            "user:password_reset",
        ]

    @pytest.mark.asyncio
    async def test_reset_token_works_once(self, app, user_id):
        token = app.auth.request_password_reset("alice@example.com")
        app.auth.reset_password(token, "reset-password")

        with pytest.raises(AuthenticationError, match="Invalid or expired reset token"):
            app.auth.reset_password(token, "again-password")

    @pytest.mark.asyncio
    async def test_expired_reset_token(self, app, settings, user_id):
        settings.password_reset_expire_minutes = -1
        token = app.auth.request_password_reset("alice@example.com")

        with pytest.raises(AuthenticationError, match="Invalid or expired reset token"):
            app.auth.reset_password(token, "reset-password")

    @pytest.mark.asyncio
    async def test_reset_for_unknown_email(self, app):
        assert app.auth.request_password_reset("ghost@example.com") is None
