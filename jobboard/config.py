from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Job Board API"
    environment: str = "development"
    api_prefix: str = "/api"
    backend_cors_origins: list[str] = [
        "http://localhost:8080",
        "http://localhost:5173",
    ]

    database_url: str = "sqlite:///./jobboard.db"
    # Upper bound on concurrent database sessions; extra requests wait for a slot.
    db_pool_size: int = 10
    db_max_overflow: int = 0
    db_pool_timeout: int = 30

    jwt_secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 7 * 24 * 60
    bcrypt_rounds: int = 12
    password_reset_expire_minutes: int = 60

    frontend_url: str = "http://localhost:8080"

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    email_from_name: str = "Job Board"

    google_client_id: str | None = None
    google_client_secret: str | None = None

    notification_retry_attempts: int = 3
    notification_retry_delay_seconds: float = 0.5

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()
