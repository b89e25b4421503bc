"""
Authentication against Supabase Auth, plus an in-memory implementation.

Stores never read a current user from global state; routes resolve the
bearer token into a SessionContext and pass it down explicitly.
"""

from __future__ import annotations

import hashlib
import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

from supabase import Client, create_client

from conectabio.errors import AuthError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionContext:
    """The authenticated caller of one request."""

    user_id: str
    access_token: str
    email: Optional[str] = None


@dataclass
class AuthSession:
    user_id: str
    email: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None


class AuthClient(Protocol):
    def sign_up(self, email: str, password: str, metadata: dict) -> str:
        ...

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        ...

    def sign_out(self, access_token: str) -> None:
        ...

    def get_user(self, access_token: str) -> SessionContext:
        ...


class InMemoryAuthClient:
    """
    Auth double for development and tests.

    ``on_sign_up`` plays the part of the backend trigger that creates a
    profile row for every new user.
    """

    def __init__(self, on_sign_up: Optional[Callable[[str, dict], None]] = None):
        self.on_sign_up = on_sign_up
        self.users: Dict[str, dict] = {}
        self.tokens: Dict[str, str] = {}

    @staticmethod
    def _hash(password: str) -> str:
        return hashlib.sha256(password.encode("utf-8")).hexdigest()

    def reset(self) -> None:
        self.users.clear()
        self.tokens.clear()

    def sign_up(self, email: str, password: str, metadata: dict) -> str:
        if email in self.users:
            raise AuthError("User already registered")
        user_id = str(uuid.uuid4())
        self.users[email] = {
            "id": user_id,
            "password_hash": self._hash(password),
            "metadata": dict(metadata),
        }
        if self.on_sign_up:
            self.on_sign_up(user_id, dict(metadata))
        return user_id

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        user = self.users.get(email)
        if not user or user["password_hash"] != self._hash(password):
            raise AuthError("Invalid login credentials")
        token = uuid.uuid4().hex
        self.tokens[token] = email
        return AuthSession(user_id=user["id"], email=email, access_token=token)

    def sign_out(self, access_token: str) -> None:
        self.tokens.pop(access_token, None)

    def get_user(self, access_token: str) -> SessionContext:
        email = self.tokens.get(access_token)
        if email is None:
            raise AuthError("Invalid or expired token")
        return SessionContext(
            user_id=self.users[email]["id"], access_token=access_token, email=email
        )


class SupabaseAuthClient:
    """Supabase Auth wrapper used by the HTTP layer."""

    def __init__(self, url: str, key: str, service_key: Optional[str] = None):
        self.client: Client = create_client(url, key)
        # Revoking another user's session server-side needs the service role.
        self.admin_client: Optional[Client] = (
            create_client(url, service_key) if service_key else None
        )

    def sign_up(self, email: str, password: str, metadata: dict) -> str:
        """
        Sign up a new user with Supabase Auth.

        Args:
            email: User email
            password: User password
            metadata: Stored as user metadata; the profile trigger reads
                ``username`` and ``role`` from it.

        Returns:
            str: The new user's id.
        """
        try:
            response = self.client.auth.sign_up(
                {"email": email, "password": password, "options": {"data": metadata}}
            )
        except Exception as e:
            logger.error(f"Supabase sign up error: {e}")
            raise AuthError("Could not create the account") from e

        if not response.user:
            logger.error(f"Sign up returned no user for {email}")
            raise AuthError("Could not create the account")
        logger.info(f"User signed up: {email}")
        return response.user.id

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        try:
            response = self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except Exception as e:
            logger.error(f"Supabase sign in error: {e}")
            raise AuthError("Invalid login credentials") from e

        if not response.user or not response.session:
            raise AuthError("Invalid login credentials")
        return AuthSession(
            user_id=response.user.id,
            email=response.user.email,
            access_token=response.session.access_token,
            refresh_token=response.session.refresh_token,
            expires_at=response.session.expires_at,
        )

    def sign_out(self, access_token: str) -> None:
        if self.admin_client is None:
            logger.warning("No service key configured; sign out is client-side only")
            return
        try:
            self.admin_client.auth.admin.sign_out(access_token)
        except Exception as e:
            logger.error(f"Supabase sign out error: {e}")
            raise AuthError("Could not sign out") from e

    def get_user(self, access_token: str) -> SessionContext:
        try:
            response = self.client.auth.get_user(access_token)
        except Exception as e:
            logger.error(f"Token verification error: {e}")
            raise AuthError("Invalid or expired token") from e

        if not response or not response.user:
            raise AuthError("Invalid or expired token")
        return SessionContext(
            user_id=response.user.id,
            access_token=access_token,
            email=response.user.email,
        )


def validate_credentials(email: str, password: str, min_password_length: int = 6) -> None:
    if not email.strip() or not password.strip():
        raise ValidationError("Email and password are required")
    if len(password) < min_password_length:
        raise ValidationError(
            f"Password must be at least {min_password_length} characters"
        )
