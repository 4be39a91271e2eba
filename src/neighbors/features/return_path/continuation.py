"""Signed, single-use continuation tokens."""

import logging
import threading
import time
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from uuid import uuid4

from jose import ExpiredSignatureError, JWTError, jwt

from src.neighbors.config import settings
from src.neighbors.features.return_path.models import ContinuationPayload

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
TOKEN_TYPE = "continuation"


class ConsumedTokenLedger:
    """Token ids that have already been redeemed, kept until the token would expire."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._consumed: dict[str, float] = {}

    def consume(self, jti: str, expires_at: float) -> bool:
        """Record a token id. Returns False if it was already consumed."""
        with self._lock:
            now = time.time()
            for key in [k for k, exp in self._consumed.items() if exp <= now]:
                del self._consumed[key]
            if jti in self._consumed:
                return False
            self._consumed[jti] = expires_at
            return True

    def clear(self) -> None:
        with self._lock:
            self._consumed.clear()


@lru_cache(maxsize=1)
def get_consumed_ledger() -> ConsumedTokenLedger:
    """Shared ledger (singleton pattern)."""
    return ConsumedTokenLedger()


class ContinuationService:
    """
    Issues and redeems continuation tokens.

    Tokens are HS256 JWTs signed with the service's own secret; they only
    carry visitor-supplied navigation state, never credentials.
    """

    def __init__(
        self,
        secret: str | None = None,
        ttl_seconds: int | None = None,
        ledger: ConsumedTokenLedger | None = None,
    ) -> None:
        self.secret = secret or settings.continuation_secret
        self.ttl_seconds = ttl_seconds or settings.continuation_ttl_seconds
        self.ledger = ledger or get_consumed_ledger()

    def issue(self, payload: ContinuationPayload) -> str:
        now = datetime.now(UTC)
        claims = {
            "typ": TOKEN_TYPE,
            "jti": uuid4().hex,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self.ttl_seconds)).timestamp()),
            **payload.model_dump(exclude_none=True),
        }
        return jwt.encode(claims, self.secret, algorithm=ALGORITHM)

    def peek(self, token: str | None) -> ContinuationPayload | None:
        """Read a token without consuming it. Invalid or expired tokens read as None."""
        claims = self._decode(token)
        return ContinuationPayload.model_validate(claims) if claims else None

    def consume(self, token: str | None) -> ContinuationPayload | None:
        """
        Redeem a token exactly once.

        Returns:
            The payload the first time; None for a repeat, expired or invalid token
        """
        claims = self._decode(token)
        if not claims:
            return None
        if not self.ledger.consume(claims["jti"], float(claims["exp"])):
            logger.info("Continuation token already consumed", extra={"jti": claims["jti"]})
            return None
        return ContinuationPayload.model_validate(claims)

    def _decode(self, token: str | None) -> dict | None:
        if not token:
            return None
        try:
            claims = jwt.decode(token, self.secret, algorithms=[ALGORITHM])
        except ExpiredSignatureError:
            logger.info("Continuation token expired")
            return None
        except JWTError as e:
            logger.warning(f"Rejected continuation token: {e}")
            return None
        if claims.get("typ") != TOKEN_TYPE or not claims.get("jti"):
            logger.warning("Rejected continuation token: wrong type")
            return None
        return claims
