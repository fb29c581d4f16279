"""
Centralized configuration management.

Rules:
- Secrets (DB URLs, JWT keys) MUST come from environment variables or a .env file
- Centralize configuration in this module
- Do not spread os.getenv calls all over the codebase
- Do not log secrets or environment values
"""
from __future__ import annotations
from urllib.parse import quote_plus
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    ENVIRONMENT: str = Field(default="development", description="development/test/production")
    LOG_LEVEL: str = Field(default="INFO", description="Root level for the citygate logger")

    # --- Database ---
    DATABASE_URL: str | None = Field(default=None, description="Full SQLAlchemy URL; overrides PG_* when set")
    PG_HOST: str = Field(default="localhost", description="PostgreSQL host")
    PG_PORT: int = Field(default=5432, description="PostgreSQL port")
    PG_DB: str = Field(default="citygate", description="PostgreSQL database name")
    PG_USER: str = Field(default="citygate", description="PostgreSQL user")
    PG_PASSWORD: str = Field(default="", description="PostgreSQL password")
    PG_SSLMODE: str = Field(default="prefer", description="PostgreSQL SSL mode (require/prefer/disable)")
    AUTO_CREATE_SCHEMA: bool = Field(default=False, description="Create missing tables on startup")

    # --- Credentials ---
    JWT_SECRET: str = Field(..., description="Credential signing secret")
    JWT_ALGORITHM: str = Field(default="HS256", description="Credential signing algorithm")
    JWT_EXP_MIN: int | None = Field(default=None, description="Explicit credential lifetime in minutes")
    JWT_EXP_MIN_PRODUCTION: int = Field(default=60, description="Credential lifetime in production")
    JWT_EXP_MIN_DEVELOPMENT: int = Field(default=7 * 24 * 60, description="Credential lifetime outside production")
    JWT_REFRESH_WINDOW_MIN: int = Field(default=10, description="Rotate credentials with less than this left")

    # --- Session transport / routing ---
    SESSION_COOKIE_NAME: str = Field(default="citygate_session", description="Cookie carrying the credential")
    LOGIN_PATH: str = Field(default="/login", description="Where unauthenticated page requests are sent")
    LOCALES: str = Field(default="en,nl,fr", description="Supported locale prefixes (comma-separated)")
    DEFAULT_LOCALE: str = Field(default="en", description="Locale used when the path carries none")

    # --- Client guard / invitations ---
    GUARD_MAX_STALENESS_SEC: int = Field(default=60, description="Max age of a cached client-side auth check")
    INVITATION_EXP_HOURS: int = Field(default=7 * 24, description="Invitation validity in hours")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def credential_lifetime_minutes(self) -> int:
        """Short-lived credentials in production, long-lived while iterating."""
        if self.JWT_EXP_MIN is not None:
            return self.JWT_EXP_MIN
        if self.is_production:
            return self.JWT_EXP_MIN_PRODUCTION
        return self.JWT_EXP_MIN_DEVELOPMENT

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{quote_plus(self.PG_USER)}:{quote_plus(self.PG_PASSWORD)}"
            f"@{self.PG_HOST}:{self.PG_PORT}/{self.PG_DB}?sslmode={self.PG_SSLMODE}"
        )

    @property
    def locales_list(self) -> list[str]:
        return [loc.strip() for loc in self.LOCALES.split(",") if loc.strip()]


settings = Settings()
