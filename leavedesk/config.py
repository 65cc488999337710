from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Leavedesk"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    database_url: str = "postgresql+asyncpg://leavedesk:leavedesk@db:5432/leavedesk"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # Compare-and-swap attempts per ledger or application write before giving up.
    ledger_max_retries: int = 3

    # Roles whose own submissions skip a policy's minimum advance notice.
    notice_waiver_roles: list[str] = []
    # Roles allowed to file leave on behalf of another employee.
    on_behalf_roles: list[str] = ["admin", "manager"]

    # Cross-type yearly cap kept as its own balance. Leave types outside the
    # exempt list reserve, consume and release against it too. None disables it.
    annual_quota_days: int | None = None
    annual_quota_leave_type: str = "annual_quota"
    annual_quota_exempt_types: list[str] = ["sick", "maternity"]


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
