from functools import lru_cache
from pathlib import Path
from typing import Annotated, List

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = Field(default="Spotlink API", env="APP_NAME", description="Human readable service name")
    environment: str = Field(default="development", env="ENVIRONMENT", description="Deployment environment name")
    debug: bool = Field(default=True, env="DEBUG", description="Enable debug mode")

    cors_origins: Annotated[List[AnyHttpUrl], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost",
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1",
            "http://127.0.0.1:3000",
        ],
        env="CORS_ORIGINS",
        description="List of allowed CORS origins",
    )

    cors_allow_origin_regex: str | None = Field(
        default=r"^https?://(localhost|127\.0\.0\.1|0\.0\.0\.0|\[::1\])(:\d+)?$",
        env="CORS_ALLOW_ORIGIN_REGEX",
        description="Optional regular expression that matches allowed CORS origins",
    )

    jwt_secret_key: str = Field(default="changeme", env="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", env="JWT_ALGORITHM")

    chat_message_max_length: int = Field(
        default=2000,
        env="CHAT_MESSAGE_MAX_LENGTH",
        description="Maximum number of characters accepted in a single chat message",
    )
    message_time_format: str = Field(
        default="%H:%M",
        env="MESSAGE_TIME_FORMAT",
        description="strftime pattern used for the short time label attached to messages",
    )
    websocket_keepalive_timeout_seconds: float = Field(
        default=30,
        env="WEBSOCKET_KEEPALIVE_TIMEOUT_SECONDS",
        description="Idle receive timeout after which the server considers sending a keepalive ping",
    )
    websocket_keepalive_ping_interval_seconds: float = Field(
        default=25,
        env="WEBSOCKET_KEEPALIVE_PING_INTERVAL_SECONDS",
        description="Minimum delay between two keepalive pings on an idle socket",
    )
    realtime_require_token: bool = Field(
        default=False,
        env="REALTIME_REQUIRE_TOKEN",
        description="Reject chat sockets that do not present a bearer token",
    )
    realtime_default_nickname: str = Field(
        default="Anonymous",
        env="REALTIME_DEFAULT_NICKNAME",
        description="Display name used until a connection sets its own nickname",
    )

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):  # type: ignore[override]
        if v in (None, "", Ellipsis):
            return v
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        if isinstance(v, (list, tuple, set)):
            return list(v)
        return v

    @field_validator("realtime_default_nickname", mode="before")
    @classmethod
    def ensure_default_nickname(cls, value: str | None) -> str:
        if value is None or not str(value).strip():
            return "Anonymous"
        return str(value).strip()


@lru_cache
def get_settings() -> Settings:
    return Settings()
