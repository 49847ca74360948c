import os
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """
    Runtime configuration, read once from the environment.

    The instance is passed explicitly to the auth helpers, the admin
    bootstrap and the rate limiter instead of being read ad hoc.
    """

    app_name: str = os.getenv("APP_NAME", "Classroom Reservation Backend")
    version: str = "0.1.0"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./classroom_reservations.db")

    # Auth / JWT
    secret_key: str = os.getenv("JWT_SECRET", "CHANGE_THIS_SECRET_IN_REAL_PROJECT")
    algorithm: str = "HS256"
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

    # Admin account created on startup (skipped when unset)
    admin_username: Optional[str] = os.getenv("ADMIN_USERNAME") or None
    admin_password: Optional[str] = os.getenv("ADMIN_PASSWORD") or None
    admin_nickname: str = os.getenv("ADMIN_NICKNAME", "系統管理員")

    # CORS
    cors_origins: List[str] = Field(default=os.getenv("CORS_ORIGINS", "*"), validate_default=True)

    # Rate limiting
    rate_limit_enabled: bool = _env_bool("RATE_LIMIT_ENABLED", True)
    rate_limit_default: str = os.getenv("RATE_LIMIT_DEFAULT", "120/minute")

    # Circuit breaker around ledger writes
    breaker_fail_max: int = int(os.getenv("BREAKER_FAIL_MAX", "3"))
    breaker_reset_timeout: int = int(os.getenv("BREAKER_RESET_TIMEOUT", "60"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Server, used when running `python -m app.main`
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        if isinstance(v, list):
            return v
        return []


@lru_cache
def get_settings() -> Settings:
    return Settings()
