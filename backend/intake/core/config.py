"""Application configuration loaded from environment variables.

Settings for the API, authentication, the user-record store, and the
onboarding wizard (session lifetime, document verification, uploads).
Uses pydantic-settings for validation and .env file support.
"""

import uuid
from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
_INSECURE_DEFAULT_PASSWORD = "intake_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database (user record store, sql backend only)
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "cyber_hub"
    database_user: str = "cyber_hub_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # API
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8000

    # CORS
    # Never set to ["*"]: the session cookie requires credentialed requests.
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Authentication
    # Local mode: DEFAULT_USER_ID provides user context without JWT.
    # Hosted mode: auth_enabled=True, JWT cookie required on every request.
    default_user_id: uuid.UUID | None = None
    auth_enabled: bool = False
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "cyber-hub"
    auth_audience: str = "cyber-hub"
    auth_cookie_name: str = "cyber-hub.session-token"

    # User record store: "memory" keeps records in-process, "sql" uses Postgres
    user_record_backend: Literal["memory", "sql"] = "memory"

    # Onboarding wizard
    onboarding_session_ttl_minutes: int = 60
    session_sweep_interval_seconds: int = 60
    verification_delay_seconds: float = 1.5
    upload_max_size_mb: int = 10

    # Rate Limiting
    # Format: "count/period" (e.g., "10/minute", "100/hour")
    rate_limit_uploads: str = "20/minute"
    rate_limit_enabled: bool = True  # Disable for testing

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def upload_max_size_bytes(self) -> int:
        """Maximum accepted document size in bytes."""
        return self.upload_max_size_mb * 1024 * 1024

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate configuration invariants and production requirements.

        Checks:
        - Session TTL, upload size and verification delay must be sane
        - CORS must not use wildcard origin (incompatible with credentials)
        - Database password must not be the default in production
        - AUTH_SECRET must be set and >= 32 chars when auth is enabled in production
        """
        if self.onboarding_session_ttl_minutes <= 0:
            msg = (
                "ONBOARDING_SESSION_TTL_MINUTES must be positive. "
                f"Got: {self.onboarding_session_ttl_minutes}"
            )
            raise ValueError(msg)
        if self.session_sweep_interval_seconds <= 0:
            msg = (
                "SESSION_SWEEP_INTERVAL_SECONDS must be positive. "
                f"Got: {self.session_sweep_interval_seconds}"
            )
            raise ValueError(msg)
        if self.upload_max_size_mb <= 0:
            msg = f"UPLOAD_MAX_SIZE_MB must be positive. Got: {self.upload_max_size_mb}"
            raise ValueError(msg)
        if self.verification_delay_seconds < 0:
            msg = (
                "VERIFICATION_DELAY_SECONDS cannot be negative. "
                f"Got: {self.verification_delay_seconds}"
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "This application uses credentials (cookies) which are "
                "incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.environment == "production":
            if (
                self.user_record_backend == "sql"
                and self.database_password == _INSECURE_DEFAULT_PASSWORD
            ):
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            if self.auth_enabled:
                secret_value = self.auth_secret.get_secret_value()
                if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                    msg = (
                        f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                        "characters when AUTH_ENABLED=true in production."
                    )
                    raise ValueError(msg)

        return self


settings = Settings()
