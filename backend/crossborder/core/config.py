# backend/crossborder/core/config.py
from functools import lru_cache
from json import JSONDecodeError, loads as json_loads
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runtime configuration for the CrossBorder API, read from environment
    variables or backend/.env. Field names map to upper-case env vars
    (database_url -> DATABASE_URL).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field(default="dev", description="dev|staging|prod")
    debug: bool = Field(default=False)
    version: str = Field(default="dev")

    database_url: str = Field(
        default="sqlite:///../dev.db",
        description="SQLAlchemy URL. SQLite locally, Postgres when deployed.",
    )

    # Sessions
    jwt_secret: str = Field(default="supersecret", description="Override outside dev.")
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=24 * 60)
    refresh_token_expire_days: int = Field(default=7)
    session_cookie_name: str = Field(default="cb_session")
    refresh_cookie_name: str = Field(default="cb_refresh")

    # Per-email login lockout; the per-IP limiter lives in core/rate_limit.py
    login_max_attempts: int = Field(default=5)
    login_attempt_window_seconds: int = Field(default=5 * 60)
    login_lockout_seconds: int = Field(default=15 * 60)

    # Per-IP requests per minute
    login_rate_limit: int = Field(default=5)
    register_rate_limit: int = Field(default=5)
    refresh_rate_limit: int = Field(default=60)

    password_reset_expire_minutes: int = Field(default=30)

    editor_invite_code: str = Field(
        default="EDITOR2025",
        description="Invitation code a new account must present to register as BLOG_EDITOR.",
    )

    # Frontends
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        description='Comma-separated origins or a JSON list, e.g. ["https://crossborder.hk"].',
    )
    frontend_url: str = Field(default="http://localhost:3000")
    enable_docs: bool = Field(default=False, description="Expose /api/v1/docs and /api/v1/redoc.")

    # Outbound mail
    email_provider: str = Field(default="log", description="log|smtp")
    email_from: Optional[str] = Field(default=None)
    smtp_host: Optional[str] = Field(default=None)
    smtp_port: int = Field(default=587)
    smtp_user: Optional[str] = Field(default=None)
    smtp_password: Optional[str] = Field(default=None)
    smtp_use_tls: bool = Field(default=True)

    # Request log budgets
    slow_http_ms: float = Field(default=1500.0)
    slow_db_total_ms: float = Field(default=800.0)
    slow_db_query_ms: float = Field(default=250.0)
    log_db_sql: bool = Field(default=False)

    def cors_origins(self) -> List[str]:
        raw = (self.allowed_origins or "").strip()
        items: list = []
        if raw.startswith("["):
            try:
                items = json_loads(raw)
            except JSONDecodeError:
                items = raw.strip("[]").replace('"', "").split(",")
        elif raw:
            items = raw.split(",")
        return [str(o).strip() for o in items if str(o).strip()]

    @property
    def is_prod(self) -> bool:
        return self.environment.lower() in {"prod", "production"}

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
