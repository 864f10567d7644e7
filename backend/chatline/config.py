# chatline/config.py

from functools import lru_cache
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_MEDIA_TYPES = "image/jpeg,image/png,video/mp4,audio/mpeg"


class Settings(BaseSettings):
    """
    Settings loaded from environment variables (or a local .env file).

    DATABASE_URL wins when set; otherwise the URL is assembled from the
    DB_* variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = ""
    db_user: str = "chatline_user"
    db_pass: str = "chatline"
    db_host: str = "localhost"
    db_port: str = "5432"
    db_name: str = "chatline"
    auto_create_tables: bool = True

    # Media intake
    media_root: str = "uploads"
    media_url_prefix: str = "/uploads"
    max_media_bytes: int = 10 * 1024 * 1024  # 10 MiB
    allowed_media_types: str = DEFAULT_ALLOWED_MEDIA_TYPES

    # Timeouts (seconds)
    store_timeout_seconds: float = 10.0
    media_timeout_seconds: float = 30.0
    push_timeout_seconds: float = 5.0

    # HTTP
    host: str = "0.0.0.0"
    port: int = 5000
    allowed_origins: str = "*"
    send_rate_limit: str = "60/minute"
    rate_limit_enabled: bool = True

    log_level: str = "INFO"

    @field_validator("max_media_bytes")
    @classmethod
    def max_media_bytes_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("max_media_bytes must be greater than 0")
        return v

    @field_validator(
        "store_timeout_seconds", "media_timeout_seconds", "push_timeout_seconds"
    )
    @classmethod
    def timeouts_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be greater than 0")
        return v

    @field_validator("media_url_prefix")
    @classmethod
    def url_prefix_must_be_absolute(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("media_url_prefix must start with '/'")
        return v.rstrip("/") or "/"

    def get_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{self.db_user}:{self.db_pass}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    def get_allowed_media_types(self) -> frozenset[str]:
        """Parse the comma-separated allow-list into a normalized set."""
        return frozenset(
            media_type.strip().lower()
            for media_type in self.allowed_media_types.split(",")
            if media_type.strip()
        )

    def get_allowed_origins_list(self) -> list[str]:
        return [
            origin.strip()
            for origin in self.allowed_origins.split(",")
            if origin.strip()
        ]


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance for the running process."""
    return Settings()
