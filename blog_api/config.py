from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    """
    Application configuration loaded from environment variables.
    Uses pydantic for validation and type safety.
    """
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Signs the session cookie value
    # Changing this invalidates all existing sessions
    session_secret_key: str

    database_url: str = "sqlite:///./blog.db"

    # Upper bound in seconds for acquiring a connection or a SQLite lock
    database_timeout: float = Field(5.0, gt=0, le=60)

    # Idle timeout: a session unused for this long is gone
    session_idle_minutes: int = Field(10, ge=1, le=24 * 60)
    session_cookie_name: str = "session_id"

    # secure=True enforces HTTPS only - must be True in production
    cookie_secure: bool = False
    cookie_domain: str = "localhost"
    cookie_httponly: bool = True
    cookie_samesite: str = "lax"

    # Argon2 work factor, bounded so a login stays well under a second
    hash_time_cost: int = Field(3, ge=1, le=10)
    hash_memory_cost: int = Field(65536, ge=8, le=262144)
    hash_parallelism: int = Field(4, ge=1, le=16)

    cors_origins: List[str] = ["*"]

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    @field_validator("cookie_samesite")
    @classmethod
    def validate_samesite(cls, v: str) -> str:
        v = v.lower()
        if v not in ("lax", "strict", "none"):
            raise ValueError("cookie_samesite must be lax, strict or none")
        return v

    @property
    def session_idle_seconds(self) -> int:
        return self.session_idle_minutes * 60


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings instance. Load once, reuse throughout application lifecycle.
    """
    return Settings()
