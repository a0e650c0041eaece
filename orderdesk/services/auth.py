"""
Admin Authentication

Login against the admins table and the bearer-token dependency that guards
the admin API.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from orderdesk.core.exceptions import AuthError, InternalError, ValidationError
from orderdesk.core.security import PasswordVerifier, verify_password
from orderdesk.models import Admin
from orderdesk.services.orders import sanitize_text
from orderdesk.services.sessions import Session, SessionStore, get_session_store

logger = logging.getLogger(__name__)

USERNAME_MAX = 80


@dataclass(frozen=True)
class LoginResult:
    token: str
    admin_id: int
    username: str
    expires_in_ms: int


class AuthService:
    """Checks credentials and hands out sessions."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        session_store: SessionStore,
        verifier: PasswordVerifier = verify_password,
    ):
        self.session_factory = session_factory
        self.session_store = session_store
        self.verifier = verifier

    async def login(self, username: Any, password: Any) -> LoginResult:
        """
        Exchange a username and password for a bearer token.

        Raises:
            ValidationError: username or password missing
            AuthError: unknown user or wrong password
            InternalError: storage failure
        """
        username = sanitize_text(username, USERNAME_MAX)
        password = "" if password is None else str(password)
        if not username or not password:
            raise ValidationError("Username and password are required")

        try:
            async with self.session_factory() as session:
                admin = await session.scalar(select(Admin).where(Admin.username == username))
        except Exception as e:
            logger.exception(f"Login lookup failed: {e}")
            raise InternalError("Could not sign in")

        if admin is None or not self.verifier(password, admin.password_hash):
            logger.warning(f"Failed login attempt for '{username}'")
            raise AuthError("Invalid username or password")

        token = self.session_store.issue(admin)
        return LoginResult(
            token=token,
            admin_id=admin.id,
            username=admin.username,
            expires_in_ms=int(self.session_store.ttl_seconds * 1000),
        )


def bearer_token(authorization: Optional[str]) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    header = authorization or ""
    return header[7:].strip() if header.startswith("Bearer ") else ""


async def require_admin(
    authorization: Optional[str] = Header(None),
    store: SessionStore = Depends(get_session_store),
) -> Session:
    """
    FastAPI dependency for admin routes.

    Raises:
        AuthError: missing, unknown or expired token
    """
    session = store.validate(bearer_token(authorization))
    if session is None:
        raise AuthError()
    return session
