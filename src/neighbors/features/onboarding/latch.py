"""Single-flight guard for the onboarding finalizer."""

import logging
import time

logger = logging.getLogger(__name__)


class SingleFlightLatch:
    """
    Lets one finalization per subject run at a time.

    A trigger arriving while another is in flight for the same subject is
    dropped. Sessions that reached their landing are remembered for
    ``completed_ttl_seconds`` so a late duplicate trigger is dropped too.
    Acquire and release never await, so within one event loop they are atomic.
    """

    def __init__(self, completed_ttl_seconds: int = 300) -> None:
        self.completed_ttl_seconds = completed_ttl_seconds
        self._in_flight: set[str] = set()
        self._completed: dict[str, float] = {}

    def try_acquire(self, subject: str, session_key: str) -> bool:
        self._prune()
        if subject in self._in_flight:
            logger.info(f"Finalization already running for {subject}, dropping trigger")
            return False
        if session_key in self._completed:
            logger.info(f"Session for {subject} already finalized, dropping trigger")
            return False
        self._in_flight.add(subject)
        return True

    def release(self, subject: str, session_key: str, completed: bool) -> None:
        self._in_flight.discard(subject)
        if completed:
            self._completed[session_key] = time.monotonic() + self.completed_ttl_seconds

    def is_in_flight(self, subject: str) -> bool:
        return subject in self._in_flight

    def _prune(self) -> None:
        now = time.monotonic()
        for key in [k for k, expires_at in self._completed.items() if expires_at <= now]:
            del self._completed[key]
