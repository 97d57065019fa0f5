from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    app_env: str = "dev"
    app_secret_key: str = "dev-secret-change-me"
    database_url: str = "postgresql+asyncpg://stockatelier:stockatelier@db:5432/stockatelier"

    # Session tokens are issued by the login service with the same secret.
    session_ttl_sec: int = 12 * 3600

    log_level: str = "INFO"
    cors_allow_origins: list[str] = ["*"]

    movements_page_size: int = 50
    dashboard_recent_movements: int = 10


settings = Settings()
