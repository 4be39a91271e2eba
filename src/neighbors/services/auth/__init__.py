"""Authentication: Supabase session verification and the auth provider adapter."""

from src.neighbors.services.auth.dependencies import (
    get_current_session,
    get_jwt_validator,
    get_optional_session,
    set_jwt_validator,
)
from src.neighbors.services.auth.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ProviderError,
)
from src.neighbors.services.auth.jwks import JWKSCache
from src.neighbors.services.auth.jwt_validator import JWTValidator
from src.neighbors.services.auth.models import AuthSession, ProviderKind
from src.neighbors.services.auth.provider import AuthProviderClient, OrphanedIdentity, ProvisionedAccount

__all__ = [
    "get_current_session",
    "get_optional_session",
    "get_jwt_validator",
    "set_jwt_validator",
    "JWKSCache",
    "JWTValidator",
    "AuthenticationError",
    "AuthorizationError",
    "ProviderError",
    "AuthSession",
    "ProviderKind",
    "AuthProviderClient",
    "OrphanedIdentity",
    "ProvisionedAccount",
]
