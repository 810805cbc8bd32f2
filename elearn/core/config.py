"""Application configuration from environment."""
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings loaded from env / .env."""

    app_name: str = "E-Learning API"
    environment: str = "development"  # development | test | production
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite+aiosqlite:///./elearn.db"

    # JWT
    secret_key: str = "change-me-in-production-use-env"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 15  # 15 days
    refresh_token_expire_days: int = 30

    # Account lifecycle
    verification_code_ttl_minutes: int = 15
    max_login_attempts: int = 5
    lockout_minutes: int = 30
    allow_admin_registration: bool = False

    # Cookies
    access_cookie_name: str = "token"
    refresh_cookie_name: str = "refreshToken"
    cookie_samesite: str = "strict"

    # CORS
    frontend_url: str = "http://localhost:3000"

    # Mail (SMTP)
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    smtp_timeout: float = 30.0
    mail_from_name: str = "7 Rings Nepal"
    mail_from_address: str = "no-reply@example.com"

    # eSewa
    esewa_merchant_id: str = "EPAYTEST"
    esewa_secret_key: str = "8gBm/:&EnhH.1/q"
    esewa_verify_url: str = "https://uat.esewa.com.np/epay/transrec"
    esewa_environment: str = "UAT"
    esewa_timeout_seconds: float = 30.0
    esewa_enforce_signature: bool = False
    # Only honoured outside production, see create_app()
    esewa_mock_verification: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def access_cookie_max_age(self) -> int:
        return self.access_token_expire_minutes * 60

    @property
    def refresh_cookie_max_age(self) -> int:
        return self.refresh_token_expire_days * 24 * 60 * 60


@lru_cache
def get_settings() -> Settings:
    return Settings()


# Package directory (holds templates/)
BASE_DIR = Path(__file__).resolve().parent.parent
