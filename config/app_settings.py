# ruff: noqa: E501
import json
import os
from typing import Annotated, Any

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # --- Core Settings ---
    ENVIRONMENT: Annotated[str, Field(default="development", description="Application environment (e.g., 'development', 'staging', 'production').")]

    # --- Logging ---
    LOG_LEVEL: Annotated[str, Field(default="DEBUG", description="Logging level for the application (e.g., DEBUG, INFO, WARNING).")]

    # --- Local storage (Redis) ---
    REDIS_URL: Annotated[str, Field(default="redis://127.0.0.1:6379", description="Full connection URL for Redis.")]
    REDIS_HOST: Annotated[str, Field(default="", description="Hostname of the Redis server. Overrides the host of REDIS_URL when set.")]
    REDIS_PORT: Annotated[int, Field(default=6379, description="Port of the Redis server, used together with REDIS_HOST.")]
    REDIS_DB: Annotated[int, Field(default=0, description="Redis database index used for workout state.")]
    REDIS_KEY_PREFIX: Annotated[str, Field(default="liftlog:", description="Prefix prepended to every persisted key.")]
    REDIS_SOCKET_TIMEOUT: Annotated[float, Field(default=5.0, description="Socket timeout in seconds for Redis operations.")]
    REDIS_SOCKET_CONNECT_TIMEOUT: Annotated[float, Field(default=3.0, description="Connect timeout in seconds for Redis.")]

    # --- Remote data API ---
    API_URL: Annotated[str, Field(default="http://127.0.0.1:8000/", description="Base URL of the remote data API.")]
    API_TOKEN: Annotated[str, Field(default="", description="Bearer token used to authenticate against the data and push APIs. Must be set in production.")]
    API_TIMEOUT: Annotated[float, Field(default=10.0, description="Timeout in seconds for a single remote call.")]
    API_MAX_RETRIES: Annotated[int, Field(default=0, description="Number of in-call retries for transient HTTP failures. Sync relies on the next mutation instead.")]
    API_RETRY_INITIAL_DELAY: Annotated[float, Field(default=0.5, description="Initial delay in seconds before the first retry.")]
    API_RETRY_BACKOFF_FACTOR: Annotated[float, Field(default=2.0, description="Multiplier applied to the retry delay after each attempt.")]
    API_RETRY_MAX_DELAY: Annotated[float, Field(default=5.0, description="Upper bound in seconds for the retry delay.")]
    API_MAX_CONNECTIONS: Annotated[int, Field(default=10, description="Maximum number of pooled HTTP connections.")]
    API_MAX_KEEPALIVE_CONNECTIONS: Annotated[int, Field(default=5, description="Maximum number of keep-alive HTTP connections.")]

    # --- Push backend ---
    PUSH_API_URL: Annotated[str | None, Field(default=None, description="Base URL of the push backend. Defaults to API_URL.")]
    PUSH_ENABLED: Annotated[bool, Field(default=False, description="If True, the background push channel is used for rest notifications.")]
    PUSH_DEVICE_ID: Annotated[str, Field(default="", description="Device identifier registered with the push backend.")]

    # --- Progress sync ---
    SYNC_DEBOUNCE_SECONDS: Annotated[float, Field(default=0.8, description="Quiet period in seconds before a progress snapshot is pushed.")]
    PROGRESS_EXPIRATION_SECONDS: Annotated[int, Field(default=24 * 60 * 60, description="Age in seconds after which a cached progress snapshot is discarded.")]

    # --- Rest timer ---
    TIMER_TICK_SECONDS: Annotated[float, Field(default=0.1, description="Period in seconds of the timer recomputation loop.")]
    WAKE_LOCK_ENABLED: Annotated[bool, Field(default=True, description="Keep the display awake while a rest timer runs.")]
    MOBILE_DEVICE: Annotated[bool, Field(default=False, description="Set on mobile hosts, where the wake lock is never requested.")]

    # --- Notifications ---
    NOTIFICATION_TAG: Annotated[str, Field(default="rest-timer", description="Dedupe tag so repeated completions replace each other.")]
    NOTIFICATION_TITLE: Annotated[str, Field(default="Rest time is over!", description="Title of the rest completion notification.")]
    NOTIFICATION_BODY: Annotated[str, Field(default="Your rest has finished. Time to get back to your workout!", description="Body of the rest completion notification.")]
    VIBRATION_PATTERN: Annotated[list[int], Field(default=[200, 100, 200], description="Vibration pattern in milliseconds played on delivery.")]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore",
    }

    @field_validator("VIBRATION_PATTERN", mode="before")
    @classmethod
    def _parse_vibration_pattern(cls, value: Any) -> list[int]:
        """
        Normalize VIBRATION_PATTERN from environment.

        - None or empty string -> []
        - JSON list string -> list of ints
        - comma-separated string -> list of ints
        """
        if value is None or (isinstance(value, str) and value.strip() == ""):
            return []
        if isinstance(value, str):
            text = value.strip()
            try:
                parsed = json.loads(text)
                if isinstance(parsed, list):
                    return [int(item) for item in parsed]
            except (ValueError, TypeError):
                pass
            return [int(part) for part in text.split(",") if part.strip()]
        return value

    @model_validator(mode="after")
    def _compute_derived_fields(self) -> "Settings":
        """Derive dependent URLs and validate production secrets."""
        self._configure_redis()
        self.API_URL = self.normalize_service_url(self.API_URL)
        self.PUSH_API_URL = self.normalize_service_url(self.PUSH_API_URL or self.API_URL)

        if str(self.ENVIRONMENT).lower() == "production":
            self._require_secret("API_TOKEN", self.API_TOKEN)
        return self

    def _configure_redis(self) -> None:
        """Compose the Redis URL from host/port hints when they are provided."""
        host = self.REDIS_HOST or os.getenv("REDIS_HOST", "")
        if host:
            self.REDIS_URL = f"redis://{host}:{self.REDIS_PORT}"

    @staticmethod
    def normalize_service_url(url: str) -> str:
        value = (url or "").strip()
        if value and "://" not in value:
            value = f"http://{value}"
        if value and not value.endswith("/"):
            value = f"{value}/"
        return value

    @staticmethod
    def _require_secret(name: str, value: str) -> None:
        if not value:
            raise ValueError(f"{name} must be set in production")

    @property
    def wake_lock_supported(self) -> bool:
        return self.WAKE_LOCK_ENABLED and not self.MOBILE_DEVICE

    def model_post_init(self, __context: Any) -> None:
        super().model_post_init(__context)
        if not self.API_TOKEN:
            logger.warning("API_TOKEN is not configured; remote sync requests will be unauthenticated.")


settings = Settings()
