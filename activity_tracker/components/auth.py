# =============================================================================
# Auth Component
# =============================================================================
#
# Users, passwords and access tokens:
#   - Registration and login (PBKDF2 password hashes)
#   - JWT access tokens, revocable by jti
#   - Password change and reset-token flow
#
# =============================================================================

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone

import jwt
from pydantic import BaseModel

from activity_tracker.config import Settings, get_settings
from activity_tracker.core.component import Component
from activity_tracker.core.errors import AuthenticationError, ConflictError, NotFoundError
from activity_tracker.core.events import EventBus, EventType, UserEvent
from activity_tracker.core.models import ApiModel, User
from activity_tracker.core.utils import generate_id, local_now, to_db_timestamp, utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# Models
# =============================================================================

class TokenPayload(BaseModel):
    """JWT token payload."""
    sub: str  # user_id
    exp: datetime
    iat: datetime
    jti: str  # unique token ID (for revocation)


class TokenResponse(ApiModel):
    """Access token handed back on login."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user: User


# =============================================================================
# Password Hashing
# =============================================================================

def hash_password(password: str) -> str:
    """
    Hash a password using PBKDF2-SHA256.

    Returns: salt:hash format string
    """
    salt = secrets.token_hex(32)
    hash_bytes = hashlib.pbkdf2_hmac(
        'sha256',
        password.encode('utf-8'),
        salt.encode('utf-8'),
        iterations=100_000
    )
    return f"{salt}:{hash_bytes.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash."""
    try:
        salt, stored_hash = password_hash.split(':')
        hash_bytes = hashlib.pbkdf2_hmac(
            'sha256',
            password.encode('utf-8'),
            salt.encode('utf-8'),
            iterations=100_000
        )
        return secrets.compare_digest(hash_bytes.hex(), stored_hash)
    except (ValueError, AttributeError):
        return False


# =============================================================================
# Component
# =============================================================================

class AuthComponent(Component):
    """User accounts and bearer tokens, stored through the Database component."""

    def __init__(self, settings: Settings | None = None, event_bus: EventBus | None = None):
        super().__init__("Auth", event_bus=event_bus)
        self.settings = settings or get_settings()
        self.db = None

    async def _init(self) -> None:
        self.db = self.require_dependency("Database")

    # =========================================================================
    # Tokens
    # =========================================================================

    def create_access_token(self, user_id: int) -> str:
        now = utc_now()
        payload = {
            "sub": str(user_id),
            "exp": now + timedelta(minutes=self.settings.jwt_access_token_expire_minutes),
            "iat": now,
            "jti": generate_id("tok"),
        }
        return jwt.encode(payload, self.settings.jwt_secret_key, algorithm=self.settings.jwt_algorithm)

    def decode_token(self, token: str) -> TokenPayload:
        """
        Decode and validate a JWT token.

        Raises:
            AuthenticationError: Token expired, malformed or revoked
        """
        try:
            payload = jwt.decode(
                token,
                self.settings.jwt_secret_key,
                algorithms=[self.settings.jwt_algorithm],
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise AuthenticationError(f"Invalid token: {e}")

        token_payload = TokenPayload(
            sub=payload["sub"],
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            jti=payload.get("jti", ""),
        )

        revoked = self.db.query(
            "SELECT 1 FROM revoked_tokens WHERE jti = ?", (token_payload.jti,)
        ).first()
        if revoked:
            raise AuthenticationError("Token has been revoked")

        return token_payload

    def verify_token(self, token: str) -> User:
        """Resolve a bearer token to its user."""
        payload = self.decode_token(token)
        try:
            return self.get_user_by_id(int(payload.sub))
        except NotFoundError:
            raise AuthenticationError("User no longer exists")

    # =========================================================================
    # Users
    # =========================================================================

    def _get_user_row(self, user_id: int) -> dict:
        row = self.db.query("SELECT * FROM users WHERE user_id = ?", (user_id,)).first()
        if row is None:
            raise NotFoundError("User not found")
        return row

    def get_user_by_id(self, user_id: int) -> User:
        return User.from_row(self._get_user_row(user_id))

    def register_user(self, username: str, email: str, password: str) -> User:
        """Create a new user; username and email must both be unused."""
        email = email.lower()
        existing = self.db.query(
            "SELECT username, email FROM users WHERE username = ? OR email = ?",
            (username, email),
        ).first()
        if existing:
            field_name = "Username" if existing["username"] == username else "Email"
            raise ConflictError(f"{field_name} already registered")

        result = self.db.query(
            "INSERT INTO users (username, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
            (username, email, hash_password(password), to_db_timestamp(local_now())),
        )
        user = self.get_user_by_id(result.lastrowid)
        logger.info(f"[Auth] Registered user {user.id} ({username})")

        self.publish(
            EventType.USER_CREATED,
            UserEvent(user_id=user.id, username=user.username, email=user.email),
        )
        return user

    def login_user(self, login: str, password: str) -> TokenResponse:
        """Authenticate by username or email and issue an access token."""
        row = self.db.query(
            "SELECT * FROM users WHERE username = ? OR email = ?",
            (login, login.lower()),
        ).first()
        if row is None or not verify_password(password, row["password_hash"]):
            raise AuthenticationError("Invalid credentials")

        self.db.query(
            "UPDATE users SET last_login = ? WHERE user_id = ?",
            (to_db_timestamp(local_now()), row["user_id"]),
        )
        user = self.get_user_by_id(row["user_id"])

        self.publish(EventType.USER_LOGIN, UserEvent(user_id=user.id, username=user.username))
        return TokenResponse(
            access_token=self.create_access_token(user.id),
            expires_in=self.settings.jwt_access_token_expire_minutes * 60,
            user=user,
        )

    def logout_user(self, token: str) -> bool:
        """Revoke the token's jti so it can no longer be used."""
        payload = self.decode_token(token)
        user_id = int(payload.sub)
        self.db.query(
            "INSERT OR IGNORE INTO revoked_tokens (jti, user_id, revoked_at) VALUES (?, ?, ?)",
            (payload.jti, user_id, to_db_timestamp(local_now())),
        )
        self.publish(EventType.USER_LOGOUT, UserEvent(user_id=user_id))
        return True

    def change_password(self, user_id: int, current_password: str, new_password: str) -> bool:
        row = self._get_user_row(user_id)
        if not verify_password(current_password, row["password_hash"]):
            raise AuthenticationError("Current password is incorrect")

        self._set_password(user_id, new_password)
        self.publish(EventType.USER_PASSWORD_CHANGED, UserEvent(user_id=user_id))
        return True

    def _set_password(self, user_id: int, password: str) -> None:
        self.db.query(
            "UPDATE users SET password_hash = ?, updated_at = ? WHERE user_id = ?",
            (hash_password(password), to_db_timestamp(local_now()), user_id),
        )

    # =========================================================================
    # Password Reset Tokens
    # =========================================================================

    def request_password_reset(self, email: str) -> str | None:
        """
        Create a password reset token for the user with this email.

        Returns token if user exists, None otherwise.
        """
        row = self.db.query("SELECT * FROM users WHERE email = ?", (email.lower(),)).first()
        if row is None:
            return None

        token = secrets.token_urlsafe(32)
        expires = local_now() + timedelta(minutes=self.settings.password_reset_expire_minutes)
        self.db.query(
            "INSERT INTO password_resets (token, user_id, expires_at) VALUES (?, ?, ?)",
            (token, row["user_id"], to_db_timestamp(expires)),
        )

        self.publish(
            EventType.USER_PASSWORD_RESET_REQUESTED,
            UserEvent(user_id=row["user_id"], username=row["username"], email=row["email"]),
        )
        return token

    def reset_password(self, token: str, new_password: str) -> bool:
        """Reset password using a reset token. Each token works once."""
        row = self.db.query(
            "SELECT * FROM password_resets WHERE token = ? AND used = 0", (token,)
        ).first()
        if row is None or row["expires_at"] < to_db_timestamp(local_now()):
            raise AuthenticationError("Invalid or expired reset token")

        with self.db.transaction():
            self._set_password(row["user_id"], new_password)
            self.db.query("UPDATE password_resets SET used = 1 WHERE token = ?", (token,))

        self.publish(EventType.USER_PASSWORD_RESET, UserEvent(user_id=row["user_id"]))
        return True
