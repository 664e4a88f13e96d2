"""Settings for the PawSafety backend."""

from __future__ import annotations

from typing import Any, Optional, Tuple

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_field(default, *env_names: str):
    if env_names:
        alias = AliasChoices(*env_names) if len(env_names) > 1 else env_names[0]
        return Field(default=default, validation_alias=alias)
    return Field(default=default)


class Settings(BaseSettings):
    redis_url: str = _env_field("redis://localhost:6379/0", "REDIS_URL")
    # Change streams are trimmed approximately to this many entries per collection
    change_stream_maxlen: int = _env_field(10_000, "CHANGE_STREAM_MAXLEN")
    subscription_block_ms: int = _env_field(5_000, "SUBSCRIPTION_BLOCK_MS")
    subscription_idle_sleep_seconds: float = 0.05

    environment: str = _env_field("production", "ENV", "APP_ENV", "ENVIRONMENT")
    secret_key: str = _env_field("dev-secret-change-me", "SECRET_KEY")
    obs_enabled: bool = _env_field(True, "OBS_ENABLED")
    obs_metrics_public: bool = _env_field(False, "OBS_METRICS_PUBLIC")
    obs_log_level: str = _env_field("INFO", "LOG_LEVEL")
    obs_log_sampling_rate_info: float = _env_field(0.1, "LOG_SAMPLING_RATE_INFO")
    obs_admin_token: Optional[str] = _env_field(None, "OBS_ADMIN_TOKEN")
    service_name: str = _env_field("pawsafety-api", "SERVICE_NAME")
    git_commit: str = _env_field("unknown", "GIT_COMMIT", "COMMIT_SHA", "SOURCE_VERSION")
    # Comma separated origins
    cors_allow_origins: Any = _env_field((), "CORS_ALLOW_ORIGINS")

    # Blob storage for chat images
    upload_dir: str = _env_field("uploads", "UPLOAD_DIR")
    upload_base_url: str = _env_field("http://localhost:8000/uploads", "UPLOAD_BASE_URL")
    chat_image_max_bytes: int = _env_field(10 * 1024 * 1024, "CHAT_IMAGE_MAX_BYTES")

    # Expo push delivery
    push_enabled: bool = _env_field(True, "PUSH_ENABLED")
    push_api_url: str = _env_field("https://exp.host/--/api/v2/push/send", "PUSH_API_URL")
    push_timeout_seconds: float = _env_field(5.0, "PUSH_TIMEOUT_SECONDS")

    # Found-pet proximity matching
    proximity_radius_km: float = _env_field(10.0, "PROXIMITY_RADIUS_KM")

    notification_preview_chars: int = 50
    notification_list_limit: int = 50

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    def is_dev(self) -> bool:
        return self.environment.lower() in ("dev", "development", "local")

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Tuple[str, ...]:
        if not value:
            return ()
        parts = value.split(",") if isinstance(value, str) else value
        return tuple(str(part).strip().rstrip("/") for part in parts if str(part).strip())

    @field_validator("obs_log_level", mode="after")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


settings = Settings()
