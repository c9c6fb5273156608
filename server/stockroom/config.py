from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./data/inventory.db"
    create_schema: bool = True
    seed_default_users: bool = False
    database_echo: bool = False

    # Ledger store
    lock_timeout_seconds: float = 5.0
    store_retry_attempts: int = 3
    store_retry_backoff_seconds: float = 0.05
    max_page_size: int = 500

    # Audit delivery
    audit_async: bool = True
    audit_workers: int = 2
    audit_failed_queue_size: int = 1000

    # Auth
    jwt_secret: str = "change-this-secret-key-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 12

    # HTTP
    cors_origins: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
