"""Application configuration."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="null",
    )

    # Application
    app_name: str = Field(default="Appointment Service", alias="APP_NAME")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_v1_prefix: str = Field(default="/api/v1", alias="API_V1_PREFIX")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8083, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    # Database
    database_url: str = Field(..., alias="DATABASE_URL")

    # JWT (client-facing access tokens)
    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=30, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Service-to-service credentials
    service_key: str = Field(..., alias="SERVICE_KEY")
    service_token_issuer: str = Field(default="appointment-service", alias="SERVICE_TOKEN_ISSUER")
    service_token_expire_minutes: int = Field(default=60, alias="SERVICE_TOKEN_EXPIRE_MINUTES")

    # Collaborators
    identity_service_url: str = Field(
        default="http://localhost:8081/api",
        alias="IDENTITY_SERVICE_URL",
    )
    facility_service_url: str = Field(
        default="http://localhost:8082/api",
        alias="FACILITY_SERVICE_URL",
    )
    notification_service_url: str = Field(
        default="http://localhost:8084/api",
        alias="NOTIFICATION_SERVICE_URL",
    )
    external_timeout_seconds: float = Field(default=5.0, alias="EXTERNAL_TIMEOUT_SECONDS")
    retry_max_attempts: int = Field(default=3, ge=1, alias="RETRY_MAX_ATTEMPTS")
    retry_delay_seconds: float = Field(default=1.0, ge=0, alias="RETRY_DELAY_SECONDS")
    # How long a request waits on notification delivery before answering
    notification_grace_seconds: float = Field(default=0.5, ge=0, alias="NOTIFICATION_GRACE_SECONDS")

    # Scheduling
    conflict_buffer_minutes: int = Field(default=120, ge=0, alias="CONFLICT_BUFFER_MINUTES")

    # CORS
    cors_origins_str: str = Field(
        default="http://localhost:3000",
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as a list."""
        if isinstance(self.cors_origins_str, str):
            return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]
        return [self.cors_origins_str]

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "development"

    @property
    def diagnostics_enabled(self) -> bool:
        """Whether error responses may carry internal exception detail."""
        return self.debug and not self.is_production


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance
settings = get_settings()
