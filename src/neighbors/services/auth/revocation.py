"""Process-local list of sessions this service has signed out."""

import threading
import time
from functools import lru_cache


class SessionRevocationList:
    """
    Remembers discarded sessions until their tokens would have expired anyway.

    Supabase access tokens are verified locally, so a token stays
    cryptographically valid after the provider-side sign-out. Sessions the
    onboarding engine rejects (no account, disabled account, unrepairable
    orphan) are recorded here and refused by get_current_session.
    """

    def __init__(self, retention_seconds: int = 3600) -> None:
        self.retention_seconds = retention_seconds
        self._lock = threading.Lock()
        self._revoked: dict[str, float] = {}

    def revoke(self, session_key: str) -> None:
        if not session_key:
            return
        with self._lock:
            self._prune()
            self._revoked[session_key] = time.monotonic() + self.retention_seconds

    def is_revoked(self, session_key: str) -> bool:
        with self._lock:
            self._prune()
            return session_key in self._revoked

    def clear(self) -> None:
        with self._lock:
            self._revoked.clear()

    def _prune(self) -> None:
        now = time.monotonic()
        expired = [key for key, expires_at in self._revoked.items() if expires_at <= now]
        for key in expired:
            del self._revoked[key]


@lru_cache(maxsize=1)
def get_revocation_list() -> SessionRevocationList:
    """Shared revocation list (singleton pattern)."""
    return SessionRevocationList()
