"""Short-lived console sessions authorizing test invocations.

Independent of the host application's own auth. Tokens come from
``secrets.token_urlsafe``; validity (not revoked, not expired) is evaluated on
every call and never cached.
"""
from __future__ import annotations

import hmac
import secrets
import threading
import time
from dataclasses import replace
from typing import Any, Callable, Dict, Mapping, Optional

from apiconsole.core.errors import CredentialsRejected, SessionInvalid
from apiconsole.core.logging import get_logger, mask_token
from apiconsole.models.session import Session

logger = get_logger("sessions")

UNKNOWN = "unknown"
REVOKED = "revoked"
EXPIRED = "expired"

DEFAULT_TTL = 30 * 60.0
TOKEN_BYTES = 32


class SessionManager:
    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        sweep_grace: float = 300.0,
        clock: Callable[[], float] = time.time,
        api_key: Optional[str] = None,
    ):
        if ttl <= 0:
            raise ValueError("session ttl must be positive")
        self.ttl = float(ttl)
        self.sweep_grace = float(sweep_grace)
        self.clock = clock
        self.api_key = api_key
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def authenticate(self, credentials: Mapping[str, Any]) -> Session:
        """Check console credentials and issue a session for the principal.

        When an api key is configured the credentials must carry a matching
        ``api_key``; the key itself never ends up in the session claims.
        """
        supplied = credentials.get("api_key")
        if self.api_key:
            if not supplied or not hmac.compare_digest(str(supplied), self.api_key):
                logger.info("session request rejected principal=%s", credentials.get("principal"))
                raise CredentialsRejected("invalid console credentials")
        claims = {k: v for k, v in credentials.items() if k != "api_key" and v is not None}
        return self.issue(claims)

    def issue(self, claims: Optional[Mapping[str, Any]] = None) -> Session:
        now = self.clock()
        self.sweep_expired(now)
        with self._lock:
            token = secrets.token_urlsafe(TOKEN_BYTES)
            while token in self._sessions:
                token = secrets.token_urlsafe(TOKEN_BYTES)
            session = Session(token=token, created_at=now, expires_at=now + self.ttl, claims=dict(claims or {}))
            self._sessions[token] = session
        logger.info("session issued token=%s principal=%s", mask_token(token), session.claims.get("principal"))
        return session

    def validate(self, token: Optional[str]) -> Session:
        """Return the live session for `token` or raise SessionInvalid(reason).

        Checks existence, then revocation, then expiry.
        """
        with self._lock:
            session = self._sessions.get(token) if token else None
        if session is None:
            raise SessionInvalid(UNKNOWN, token)
        if session.revoked:
            raise SessionInvalid(REVOKED, token)
        if session.is_expired(self.clock()):
            raise SessionInvalid(EXPIRED, token)
        return session

    def revoke(self, token: Optional[str]) -> bool:
        """Mark `token` revoked. Idempotent; returns False for unknown tokens."""
        with self._lock:
            session = self._sessions.get(token) if token else None
            if session is None:
                return False
            if not session.revoked:
                self._sessions[token] = replace(session, revoked=True)  # type: ignore[index]
        logger.info("session revoked token=%s", mask_token(token))
        return True

    def sweep_expired(self, now: Optional[float] = None) -> int:
        """Drop sessions whose expiry passed more than `sweep_grace` ago."""
        now = self.clock() if now is None else now
        cutoff = now - self.sweep_grace
        with self._lock:
            stale = [t for t, s in self._sessions.items() if s.expires_at <= cutoff]
            for t in stale:
                del self._sessions[t]
        if stale:
            logger.debug("swept %d stale sessions", len(stale))
        return len(stale)

    def active_count(self) -> int:
        now = self.clock()
        with self._lock:
            return sum(1 for s in self._sessions.values() if s.is_valid(now))

    def reset(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


__all__ = ["SessionManager", "UNKNOWN", "REVOKED", "EXPIRED", "DEFAULT_TTL"]
