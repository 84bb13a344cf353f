"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version
    VERSION: str = "0.1.0"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Proxy/Load Balancer Settings
    # Set to True when running behind nginx/Cloudflare to trust X-Forwarded-For
    TRUST_PROXY_HEADERS: bool = False

    # Database
    DATABASE_URL: str

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 24

    # Credentials
    PASSWORD_HASH_ITERATIONS: int = 310000
    REQUIRE_EMAIL_VERIFICATION: bool = False

    # CORS (dashboard origins; the widget endpoint allows any origin)
    CORS_ORIGINS: str = "http://localhost:3000"

    # Frontend (for links in responses)
    FRONTEND_URL: str = "http://localhost:3000"

    # Attachment storage
    STORAGE_BACKEND: str = "local"  # local | s3
    LOCAL_STORAGE_PATH: str = "/tmp/feedloop-attachments"
    S3_BUCKET: str = "feedloop-attachments"
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: str = ""  # MinIO or other S3-compatible endpoint
    S3_URL_STYLE: str = ""  # path | virtual
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute)
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    RATE_LIMIT_API: int = 120  # General API
    RATE_LIMIT_WIDGET: int = 30  # Public widget submissions
    RATE_LIMIT_EXPORT: int = 10  # Report exports

    # Login/registration throttle (fixed window per client)
    AUTH_RATE_LIMIT_WINDOW_MS: int = 15 * 60 * 1000
    AUTH_RATE_LIMIT_MAX_REQUESTS: int = 5

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
