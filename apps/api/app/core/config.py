"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Proxy/Load Balancer Settings
    # Set to True when running behind nginx/Cloudflare to trust X-Forwarded-For
    TRUST_PROXY_HEADERS: bool = False

    # Database
    DATABASE_URL: str

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 24

    # CORS (mobile dev servers + web dashboard)
    CORS_ORIGINS: str = "http://localhost:8081,http://localhost:19006"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Test mode (in-memory rate limit storage, no default limits)
    TESTING: bool = False

    # Rate Limiting (requests per minute, shared across workers via Redis)
    REDIS_URL: str = "redis://localhost:6379/0"
    RATE_LIMIT_API: int = 120  # General API
    RATE_LIMIT_DETECTIONS: int = 600  # Detection ingestion from camera devices

    # Detection statistics
    DETECTION_STATS_DEFAULT_DAYS: int = 7
    CRITICAL_LOOKBACK_HOURS: int = 24

    # Real-time fan-out
    WS_PUBLISH_TIMEOUT_SECONDS: float = 5.0

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies only in production."""
        return self.ENV != "dev"


settings = Settings()
