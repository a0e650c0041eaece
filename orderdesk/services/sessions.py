"""
Admin Session Store

Issues opaque bearer tokens after a successful login and answers "is this
token still good?" for every protected request and every live stream.

Sessions live in process memory only. Expired entries are removed lazily
when looked up, and in bulk by ``sweep()`` which the heartbeat loop calls on
a fixed interval. Tokens are never renewed; an expired session means the
admin logs in again.
"""

import logging
import secrets
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional

from orderdesk.core.config import get_settings

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32  # 256 bits


@dataclass(frozen=True)
class Session:
    """An issued bearer token and the admin it belongs to."""
    token: str
    admin_id: int
    username: str
    expires_at: float  # epoch seconds


class SessionStore:
    """In-memory token -> Session map with TTL expiry."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def issue(self, admin) -> str:
        """
        Create a session for an admin.

        Args:
            admin: Anything with ``id`` and ``username`` (usually models.Admin)

        Returns:
            The new bearer token
        """
        token = secrets.token_hex(TOKEN_BYTES)
        while token in self._sessions:
            token = secrets.token_hex(TOKEN_BYTES)

        self._sessions[token] = Session(
            token=token,
            admin_id=admin.id,
            username=admin.username,
            expires_at=self._clock() + self.ttl_seconds,
        )
        logger.info(f"Session issued for {admin.username} (token {token[:8]}...)")
        return token

    def validate(self, token: Optional[str]) -> Optional[Session]:
        """
        Look up a token.

        Returns the session while ``now < expires_at``. An expired session
        is deleted and None is returned.
        """
        if not token:
            return None

        session = self._sessions.get(token)
        if session is None:
            return None

        if self._clock() >= session.expires_at:
            del self._sessions[token]
            logger.info(f"Session for {session.username} expired")
            return None

        return session

    def revoke(self, token: str) -> bool:
        return self._sessions.pop(token, None) is not None

    def sweep(self) -> int:
        """Delete every expired session. Returns how many were removed."""
        now = self._clock()
        expired = [t for t, s in self._sessions.items() if s.expires_at <= now]
        for token in expired:
            del self._sessions[token]

        if expired:
            logger.info(f"Session sweep removed {len(expired)} expired session(s)")
        return len(expired)

    def clear(self) -> None:
        self._sessions.clear()


@lru_cache()
def get_session_store() -> SessionStore:
    """Process-wide session store."""
    return SessionStore(ttl_seconds=get_settings().session_ttl_seconds)
