"""
Configuration settings for the Attendance & Leave Service.

All settings can be overridden through environment variables or a local
``.env`` file. Office-window and leave-allocation policy live here as well,
since they are the only tunable parameters of the attendance state machine.
"""

from datetime import time
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from the environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "attendance-leave-service"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list[str] = ["*"]
    CORS_ALLOW_HEADERS: list[str] = ["*"]

    # Database
    DATABASE_URL: str = "sqlite:///./attendance.db"
    DATABASE_ECHO: bool = False

    # Collaborating services
    EMPLOYEE_SERVICE_URL: str = "http://localhost:8001"
    EMPLOYEE_SERVICE_TIMEOUT: float = 10.0

    # Office window policy
    OFFICE_START_TIME: time = time(9, 30)
    OFFICE_END_TIME: time = time(18, 30)
    MIN_PRESENT_MINUTES: int = Field(default=270, ge=0)
    # Python weekday numbers (Monday=0 ... Sunday=6)
    WEEKLY_REST_DAYS: list[int] = [5, 6]

    # Leave policy
    DEFAULT_LEAVE_ALLOCATIONS: dict[str, float] = {
        "Casual": 12,
        "Sick": 12,
        "Earned": 15,
        "Unpaid": 0,
    }

    # Evidence storage
    EVIDENCE_BACKEND: str = "local"  # local | http
    EVIDENCE_LOCAL_DIR: str = "var/evidence"
    EVIDENCE_PUBLIC_BASE_URL: str = "http://localhost:8000/evidence"
    EVIDENCE_UPLOAD_URL: Optional[str] = None
    EVIDENCE_UPLOAD_TOKEN: Optional[str] = None
    EVIDENCE_UPLOAD_TIMEOUT: float = 30.0
    EVIDENCE_MAX_BYTES: int = 5 * 1024 * 1024
    EVIDENCE_ALLOWED_CONTENT_TYPES: list[str] = ["image/jpeg", "image/jpg", "image/png"]

    # Kafka
    KAFKA_ENABLED: bool = False
    KAFKA_BOOTSTRAP_SERVERS: str = "localhost:9092"
    KAFKA_CLIENT_ID: str = "attendance-leave-service"
    KAFKA_CONSUMER_GROUP: str = "attendance-leave-service"

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # Rate limiting for attendance marking
    RATE_LIMIT_BACKEND: str = "memory"  # memory | redis
    RATE_LIMIT_MAX_ATTEMPTS: int = 5
    RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60

    # Security
    JWT_SECRET: str = "change-me-in-production-at-least-32-bytes"
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: Optional[str] = None
    REVIEWER_GROUPS: list[str] = ["HR-Administrators", "HR-Managers"]

    @field_validator("OFFICE_END_TIME")
    @classmethod
    def _end_after_start(cls, value: time, info) -> time:
        start = info.data.get("OFFICE_START_TIME")
        if start is not None and value <= start:
            raise ValueError("OFFICE_END_TIME must be later than OFFICE_START_TIME")
        return value

    @field_validator("WEEKLY_REST_DAYS")
    @classmethod
    def _valid_weekdays(cls, value: list[int]) -> list[int]:
        for day in value:
            if day < 0 or day > 6:
                raise ValueError(f"Invalid weekday {day}, expected 0-6")
        return value

    @property
    def cors_origins_list(self) -> list[str]:
        """Return CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()
