"""Custom exceptions for authentication and the auth provider."""


class AuthenticationError(Exception):
    """Raised when authentication fails (invalid credentials, expired tokens, etc.)."""

    pass


class AuthorizationError(Exception):
    """Raised when an authenticated user lacks permission to access a resource."""

    pass


class ProviderError(AuthenticationError):
    """Raised when the authentication provider rejects a request (bad email, rate limit, ...)."""

    pass
