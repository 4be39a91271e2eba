"""FastAPI dependencies that turn a Supabase bearer token into an AuthSession."""

import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from src.neighbors.services.auth.models import AuthSession
from src.neighbors.services.auth.revocation import get_revocation_list
from src.neighbors.services.posthog import PostHogService

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)

# Global JWT validator instance (initialized in main.py startup)
_jwt_validator = None


def set_jwt_validator(validator):
    """
    Set the global JWT validator instance.

    Called during application startup to initialize the JWT validator.

    Args:
        validator: JWTValidator instance
    """
    global _jwt_validator
    _jwt_validator = validator


def get_jwt_validator():
    """
    Get the global JWT validator instance.

    Returns:
        JWTValidator instance

    Raises:
        RuntimeError: If JWT validator not initialized
    """
    if _jwt_validator is None:
        raise RuntimeError(
            "JWT validator not initialized. "
            "Ensure application startup event calls set_jwt_validator()."
        )
    return _jwt_validator


def _reject(detail: str, distinct_id: str, error: str) -> HTTPException:
    PostHogService().capture(
        distinct_id=distinct_id,
        event="authentication_failed",
        properties={"error": error},
    )
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


async def session_from_token(token: str) -> AuthSession:
    """
    Verify a bearer token and build the provider session it represents.

    Args:
        token: Supabase access token

    Returns:
        AuthSession for the token

    Raises:
        HTTPException: 401 if the token is invalid, incomplete, or was revoked
    """
    try:
        validator = get_jwt_validator()
        claims = await validator.verify_token(token)
    except JWTError as e:
        logger.warning(f"JWT verification failed: {str(e)}", extra={"error": str(e)})
        raise _reject("Invalid authentication credentials", "anonymous", "jwt_verification_failed")
    except Exception as e:
        logger.error(f"Auth failed: {str(e)}", exc_info=True)
        raise _reject("Invalid authentication credentials", "anonymous", "token_validation_failed")

    user_id = claims.get("sub")
    if not user_id:
        logger.warning("Auth failed: missing user ID", extra={"error_type": "missing_sub_claim"})
        raise _reject("Invalid token: missing user ID", "anonymous", "missing_sub_claim")

    if not claims.get("email"):
        logger.warning(
            f"Auth failed: missing email for {user_id}",
            extra={"error_type": "missing_email_claim"},
        )
        raise _reject("Invalid token: missing email", str(user_id), "missing_email_claim")

    session = AuthSession.from_claims(claims, access_token=token)

    if get_revocation_list().is_revoked(session.session_key):
        logger.info(f"Rejected revoked session for {session.subject}")
        raise _reject("Session has been signed out", str(session.subject), "session_revoked")

    logger.info(f"User authenticated: {session.subject} ({session.email})")
    return session


async def get_current_session(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> AuthSession:
    """
    Require a valid provider session on the request.

    The session is also stored on ``request.state.session`` so the rate
    limiter can key on the user instead of the IP.

    Raises:
        HTTPException: 401 if token invalid/missing/revoked

    Example:
        @router.get("/consent/status")
        async def status(session: AuthSession = Depends(get_current_session)):
            return {"user_id": session.subject}
    """
    session = await session_from_token(credentials.credentials)
    request.state.session = session
    return session


async def get_optional_session(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_security),
) -> AuthSession | None:
    """
    Like get_current_session, but returns None when no bearer token was sent.

    Used by the auth callback, which must still answer when the provider
    handshake failed and no session exists.
    """
    if credentials is None:
        return None
    session = await session_from_token(credentials.credentials)
    request.state.session = session
    return session
