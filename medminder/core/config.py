import os
import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import List

logger = logging.getLogger(__name__)


ENV_PRODUCTION = os.getenv("ENVIRONMENT", "development").lower() == "production"

STORAGE_BACKENDS = ("mongo", "memory")


#------This Class handles the Settings Configuration---------
class Settings(BaseSettings):

    environment: str = "development"
    server_host: str = "0.0.0.0"
    port: int = 8001

    storage_backend: str = "mongo"
    mongodb_uri: str = "mongodb://localhost:27017"
    db_name: str = "medminder"

    firebase_credentials_path: str = "./firebase-credentials.json"
    notifications_enabled: bool = True
    fcm_topic: str = "medminder-reminders"

    timezone: str = "UTC"

    reminders_enabled: bool = True
    action_window_hours: float = 4.0
    reminder_horizon_days: int = 7
    reminder_lead_minutes: int = 5
    catch_up_delay_seconds: int = 5
    reanchor_threshold_minutes: int = 20
    dispatch_interval_seconds: int = 30

    cors_origins: str = "http://localhost:8081,http://localhost:19006"

    @property
    def cors_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",")]

#------This Function validates the storage backend---------
    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in STORAGE_BACKENDS:
            raise ValueError(f"storage_backend must be one of {', '.join(STORAGE_BACKENDS)}")
        return v

#------This Function validates the timezone---------
    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @field_validator("action_window_hours")
    @classmethod
    def validate_action_window(cls, v: float) -> float:
        if v < 0:
            raise ValueError("action_window_hours cannot be negative")
        return v

    @field_validator(
        "reminder_horizon_days",
        "reminder_lead_minutes",
        "catch_up_delay_seconds",
        "dispatch_interval_seconds",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("value must be positive")
        return v

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._validate_production_settings()

    def _validate_production_settings(self):
        if ENV_PRODUCTION and self.storage_backend == "memory":
            logger.warning(
                "STORAGE_BACKEND=memory in production. Records will be lost on restart."
            )
        if not self.reminders_enabled:
            logger.info("Reminders are disabled. Resync calls will only cancel triggers.")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
