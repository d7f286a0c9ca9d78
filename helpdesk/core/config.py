# helpdesk/core/config.py
import json
from typing import List, Union, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ==== Infrastructure ====
    database_url: str = "postgresql+asyncpg://app:app@db:5432/helpdesk"
    redis_url: str = "redis://redis:6379/0"

    # ==== Security / sessions ====
    jwt_secret: str = "changeme"
    jwt_alg: str = "HS256"

    # session lifetime in minutes, one week
    session_expires_min: int = 60 * 24 * 7
    session_cookie_name: str = "session"
    session_cookie_secure: bool = False

    # ==== CORS ====
    # CORS_ORIGINS=http://localhost:3000,http://127.0.0.1:3000
    cors_origins: Union[str, List[str]] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # ==== Registration policy ====
    allow_self_signup: bool = True

    # ==== Bootstrap admin / demo users ====
    admin_email: str = "admin@example.com"
    admin_password: str = "ChangeMe123!"
    admin_name: str = "Admin"
    create_demo_agent: bool = True
    create_demo_user: bool = True

    # ==== Notifications ====
    notifications_enabled: bool = True
    notifications_queue: str = "notifications"
    webhook_url: Optional[str] = None
    webhook_secret: Optional[str] = None

    # ==== Logging / environment ====
    env: str = "dev"          # dev|staging|prod
    log_level: str = "INFO"   # DEBUG|INFO|WARNING|ERROR

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                try:
                    parsed = json.loads(s)
                except ValueError:
                    parsed = None
                if isinstance(parsed, list):
                    return [str(i).strip() for i in parsed if str(i).strip()]
            return [i.strip() for i in s.split(",") if i.strip()]
        return v


settings = Settings()
