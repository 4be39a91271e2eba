"""JWKS (JSON Web Key Set) fetching and caching for Supabase session verification."""

import logging
from datetime import UTC, datetime

import httpx
from jose import jwk
from jose.backends.base import Key

logger = logging.getLogger(__name__)

# Supabase signs access tokens with either an RSA or an EC key
ALGORITHM_BY_KEY_TYPE = {"RSA": "RS256", "EC": "ES256"}


class JWKSCache:
    """
    In-memory cache of the Supabase project's public signing keys.

    Keys are fetched once at startup and refreshed when the TTL expires or
    when a token arrives signed by a key ID we have not seen (key rotation).

    Attributes:
        jwks_url: Supabase JWKS endpoint (/auth/v1/.well-known/jwks.json)
        cache_ttl: Cache time-to-live in seconds
    """

    def __init__(self, jwks_url: str, cache_ttl: int = 3600):
        self.jwks_url = jwks_url
        self.cache_ttl = cache_ttl
        self._keys: dict[str, Key] = {}
        self._last_refresh: datetime | None = None
        self._http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(10.0, read=30.0, connect=10.0, write=10.0)
        )

    async def get_signing_key(self, kid: str) -> Key:
        """
        Return the public key for a key ID, refreshing the cache if needed.

        Args:
            kid: Key ID from the access token header

        Returns:
            Public key used to verify the token signature

        Raises:
            ValueError: If the key ID is still unknown after a refresh
            httpx.HTTPError: If the JWKS endpoint cannot be reached
        """
        if self._needs_refresh():
            await self.refresh_keys()

        key = self._keys.get(kid)
        if key is None:
            logger.warning(
                f"Key ID '{kid}' not found in cache, refreshing JWKS",
                extra={"kid": kid, "cached_kids": list(self._keys.keys())},
            )
            await self.refresh_keys()
            key = self._keys.get(kid)

        if key is None:
            raise ValueError(f"Key ID '{kid}' not found in JWKS")

        return key

    async def refresh_keys(self) -> None:
        """
        Fetch the JWKS document and replace the cached keys.

        Keys without a ``kid`` are skipped. An empty key set is cached as-is
        (the project has not published keys yet) so we do not hammer the endpoint.

        Raises:
            httpx.HTTPError: If the request fails
        """
        try:
            logger.info(f"Fetching JWKS from {self.jwks_url}")
            response = await self._http_client.get(self.jwks_url)
            response.raise_for_status()
            keys_list = response.json().get("keys", [])
        except httpx.HTTPError as e:
            logger.error(
                f"Failed to fetch JWKS from {self.jwks_url}: {e}",
                exc_info=True,
                extra={"error_type": "jwks_fetch_failed"},
            )
            raise

        if not keys_list:
            logger.warning(
                "JWKS response contains no keys; session verification will fail until "
                "the Supabase project publishes signing keys",
                extra={"jwks_url": self.jwks_url},
            )

        new_keys: dict[str, Key] = {}
        for key_data in keys_list:
            kid = key_data.get("kid")
            if not kid:
                logger.warning("JWKS key missing 'kid', skipping")
                continue

            kty = key_data.get("kty")
            algorithm = ALGORITHM_BY_KEY_TYPE.get(kty, key_data.get("alg", "RS256"))
            new_keys[kid] = jwk.construct(key_data, algorithm=algorithm)
            logger.debug(f"Loaded key {kid} ({kty}/{algorithm})")

        self._keys = new_keys
        self._last_refresh = datetime.now(UTC)
        logger.info(
            "JWKS cache refreshed",
            extra={"key_count": len(new_keys), "key_ids": list(new_keys.keys())},
        )

    def _needs_refresh(self) -> bool:
        """Check whether the cache is empty or older than its TTL."""
        if self._last_refresh is None:
            return True
        age = (datetime.now(UTC) - self._last_refresh).total_seconds()
        return age >= self.cache_ttl

    async def close(self) -> None:
        """Close the HTTP client. Called during application shutdown."""
        await self._http_client.aclose()
        logger.info("JWKS cache closed")
