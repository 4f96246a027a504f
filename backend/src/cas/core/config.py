"""Configuration management for the CAS backend.

Uses Pydantic Settings for type-safe, environment-based configuration.
"""

from pathlib import Path
from typing import Annotated

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Load environment variables from .env file
load_dotenv(override=True)


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # App configuration
    app_name: str = Field("CAS", alias="CAS_APP_NAME")
    debug: bool = Field(False, alias="CAS_DEBUG")
    version: str = Field("0.1.0-dev", alias="CAS_APP_VERSION")

    # API configuration
    api_v1_prefix: str = "/api/v1"
    api_host: str = Field("127.0.0.1", alias="CAS_API_HOST")
    api_port: int = Field(8000, alias="CAS_API_PORT")
    environment: str = Field("development", alias="CAS_ENVIRONMENT")

    # Database configuration
    database_url: str = Field(alias="CAS_DATABASE_URL")
    database_pool_size: int = 10
    database_max_overflow: int = 20
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600
    # Upper bound for a single store round-trip; exceeding it is reported as store unavailability
    store_timeout_seconds: float = Field(5.0, alias="CAS_STORE_TIMEOUT_SECONDS")

    # Redis configuration
    # Set CAS_REDIS_URL to share the permission-check cache between processes; omit for in-memory.
    redis_url: str | None = Field(None, alias="CAS_REDIS_URL")
    redis_connection_timeout: int = Field(5, alias="CAS_REDIS_CONNECTION_TIMEOUT")
    redis_socket_timeout: int = Field(5, alias="CAS_REDIS_SOCKET_TIMEOUT")

    @property
    def redis_enabled(self) -> bool:
        """Whether Redis should be used, based on CAS_REDIS_URL being set."""
        return bool(self.redis_url)

    # Permission check cache. Without CAS_REDIS_URL the cache is per-process, so only enable
    # it for single-worker deployments or together with Redis.
    permission_cache_enabled: bool = Field(False, alias="CAS_PERMISSION_CACHE_ENABLED")
    permission_cache_ttl: int = Field(60, alias="CAS_PERMISSION_CACHE_TTL")

    # JWT configuration
    jwt_secret_key: str | None = Field(None, alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    jwt_access_token_expire_minutes: int = Field(60, alias="JWT_ACCESS_TOKEN_EXPIRE_MINUTES")

    # Admin configuration
    # Comma-separated in the environment, parsed by validate_admin_emails
    admin_emails: Annotated[list[str], NoDecode] = Field(default_factory=list, alias="ADMIN_EMAILS")

    # Plugin catalog
    plugins_root: str = Field("plugins", alias="CAS_PLUGINS_ROOT", validate_default=True)
    plugins_auto_seed: bool = Field(True, alias="CAS_PLUGINS_AUTO_SEED")

    # Logging configuration
    log_level: str = Field("INFO", alias="CAS_LOG_LEVEL")
    log_format: str = Field("text", alias="CAS_LOG_FORMAT")  # text or json
    log_dir: str | None = Field(None, alias="CAS_LOG_DIR")

    # Security configuration
    allowed_origins: list[str] = ["*"]

    @staticmethod
    def _repo_root_from_this_file() -> Path:
        """Resolve repository root for both local and container layouts.

        - Local dev: <repo>/backend/src/cas/core/config.py -> repo root = <repo>
        - Container: /app/src/cas/core/config.py -> repo root = /app
        """
        here = Path(__file__).resolve()
        src_dir = here.parents[2]
        candidate_parent = src_dir.parent
        return candidate_parent.parent if candidate_parent.name == "backend" else candidate_parent

    @field_validator("plugins_root", mode="before")
    @classmethod
    def _resolve_plugins_root(cls, v: str) -> str:
        """Resolve relative plugin roots against the repository root."""
        p = Path(v)
        if p.is_absolute():
            return str(p)
        return str((cls._repo_root_from_this_file() / p).resolve())

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["json", "text"]
        if v.lower() not in valid_formats:
            raise ValueError(f"Log format must be one of: {valid_formats}")
        return v.lower()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment setting."""
        valid_environments = ["development", "staging", "production"]
        if v.lower() not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v.lower()

    @field_validator("store_timeout_seconds", "permission_cache_ttl")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("admin_emails", mode="before")
    @classmethod
    def validate_admin_emails(cls, v: str | list) -> list:
        """Parse admin emails from comma-separated string or list."""
        if isinstance(v, str):
            if not v.strip():
                return []
            return [email.strip().lower() for email in v.split(",") if email.strip()]
        if isinstance(v, list):
            return [email.strip().lower() for email in v if email.strip()]
        return []

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        populate_by_name=True,
        extra="ignore",
    )


def get_settings() -> Settings:
    """Build a settings instance from the environment."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance - created when first accessed
settings = None


def get_settings_instance() -> Settings:
    """Get the global settings instance, creating it if necessary."""
    global settings  # noqa: PLW0603
    if settings is None:
        settings = get_settings()
    return settings
