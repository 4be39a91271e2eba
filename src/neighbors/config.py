"""Application configuration using Pydantic Settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # System Configuration
    api_v1_prefix: str = "/api/v1"
    debug: bool = False
    cors_origins: str = "http://localhost:5173,http://localhost:4173"
    rate_limit_enabled: bool = True
    site_url: str = "http://localhost:5173"

    # Supabase Configuration
    supabase_url: str = "https://test.supabase.co"
    supabase_anon_key: str = "test-anon-key"
    supabase_service_role_key: str = "test-service-role-key"

    # JWT Verification Configuration
    use_local_jwt_verification: bool = True
    jwks_cache_ttl_seconds: int = 3600  # 1 hour
    jwt_audience: str = "authenticated"
    jwt_leeway_seconds: int = 10  # Clock skew tolerance

    # Continuation tokens (return path + pending invite across the auth redirect)
    continuation_secret: str = "dev-continuation-secret"
    continuation_ttl_seconds: int = 900
    return_path_prefixes: str = "/communities/,/dashboard,/neighborhood-cred,/submit-vendor"

    # Onboarding
    default_community_slug: str = "boca-bridges"
    terms_version: str = "1.0"
    signup_bonus_points: int = 5
    finalize_guard_ttl_seconds: int = 300
    orphan_fast_path_max_age_minutes: int = 60
    repair_retry_backoff_seconds: float = 0.25

    # PostHog Configuration
    posthog_api_key: str | None = None
    posthog_host: str = "https://app.posthog.com"

    # Courier Configuration (admin signup notifications)
    courier_api_key: str = ""
    admin_notification_email: str = ""

    @property
    def return_path_prefix_list(self) -> list[str]:
        """Allowed return-path prefixes as a list."""
        return [prefix.strip() for prefix in self.return_path_prefixes.split(",") if prefix.strip()]


settings = Settings()
