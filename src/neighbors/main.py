"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.neighbors.config import settings
from src.neighbors.features.consent.handlers import router as consent_router
from src.neighbors.features.email_status.handlers import router as email_status_router
from src.neighbors.features.onboarding.handlers import router as onboarding_router
from src.neighbors.features.return_path.handlers import router as continuation_router
from src.neighbors.features.session.handlers import router as session_router
from src.neighbors.services.auth import JWKSCache, JWTValidator, set_jwt_validator
from src.neighbors.services.posthog import PostHogService
from src.neighbors.services.rate_limiter import limiter

logger = logging.getLogger(__name__)

DEV_CONTINUATION_SECRET = "dev-continuation-secret"

# Global JWKS cache instance for cleanup
_jwks_cache = None


async def _start_session_verification() -> None:
    """Fetch the Supabase signing keys and install the access-token validator."""
    global _jwks_cache

    # Supabase publishes its signing keys under /auth/v1/.well-known/jwks.json
    auth_url = f"{settings.supabase_url}/auth/v1"
    jwks_url = f"{auth_url}/.well-known/jwks.json"
    _jwks_cache = JWKSCache(jwks_url=jwks_url, cache_ttl=settings.jwks_cache_ttl_seconds)
    await _jwks_cache.refresh_keys()

    set_jwt_validator(
        JWTValidator(
            jwks_cache=_jwks_cache,
            issuer=auth_url,
            audience=settings.jwt_audience,
            leeway=settings.jwt_leeway_seconds,
        )
    )
    logger.info(
        "Session verification ready",
        extra={"jwks_url": jwks_url, "cache_ttl": settings.jwks_cache_ttl_seconds, "issuer": auth_url},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle (startup and shutdown)."""
    if settings.continuation_secret == DEV_CONTINUATION_SECRET and not settings.debug:
        logger.warning(
            "CONTINUATION_SECRET is the development default; return paths can be forged",
            extra={"error_type": "insecure_continuation_secret"},
        )

    if settings.use_local_jwt_verification:
        try:
            await _start_session_verification()
        except Exception as e:
            logger.error(
                f"Failed to initialize JWT validator: {e}",
                exc_info=True,
                extra={"error_type": "jwt_validator_init_failed"},
            )
            raise
    else:
        logger.info("Local JWT verification disabled")

    logger.info(
        "Onboarding engine configured",
        extra={
            "default_community": settings.default_community_slug,
            "terms_version": settings.terms_version,
            "orphan_fast_path_minutes": settings.orphan_fast_path_max_age_minutes,
        },
    )

    yield

    # Shutdown
    PostHogService().flush()
    if _jwks_cache is not None:
        try:
            await _jwks_cache.close()
            logger.info("JWT validator cleanup completed")
        except Exception as e:
            logger.error(f"Error during JWT validator cleanup: {e}", exc_info=True)


app = FastAPI(
    title="Neighbors API",
    description="Identity resolution and onboarding for the neighborhood vendor directory",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

origins = settings.cors_origins.split(",")
logger.info(f"Origins : {origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(email_status_router, prefix=settings.api_v1_prefix, tags=["auth"])
app.include_router(continuation_router, prefix=settings.api_v1_prefix, tags=["auth"])
app.include_router(session_router, prefix=settings.api_v1_prefix, tags=["auth"])
app.include_router(onboarding_router, prefix=settings.api_v1_prefix, tags=["onboarding"])
app.include_router(consent_router, prefix=settings.api_v1_prefix, tags=["consent"])


class HealthCheckResponse(BaseModel):
    """Health check response."""

    status: str


@app.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint."""
    return HealthCheckResponse(status="healthy")
