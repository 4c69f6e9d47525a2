# apps/backend/config/settings.py
import os
from functools import lru_cache
from typing import List

from dotenv import load_dotenv

from apps.backend.flags import enabled, csv_list

load_dotenv()


class Settings:
    """
    Runtime configuration, read once from the environment (and .env if present).
    """

    def __init__(self) -> None:
        self.CANWIN_VERSION: str = os.getenv("CANWIN_VERSION", "1.0.0")
        self.ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development").strip().lower()

        # Supabase
        self.SUPABASE_URL: str = (os.getenv("SUPABASE_URL") or "").rstrip("/")
        self.SUPABASE_KEY: str = (
            os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_ANON_KEY") or ""
        ).strip()
        self.AVATAR_BUCKET: str = os.getenv("AVATAR_BUCKET", "avatars")

        # CORS: "allowlist" uses CORS_ALLOW_ORIGINS, "off" adds no middleware
        self.CORS_MODE: str = os.getenv("CORS_MODE", "allowlist")
        self.CORS_ALLOW_ORIGINS: List[str] = csv_list("CORS_ALLOW_ORIGINS", "http://localhost:5173")

        # Admin console
        self.ADMIN_EMAILS: List[str] = [e.lower() for e in csv_list("ADMIN_EMAILS")]

        # Keep-alive
        self.CRON_SECRET: str = os.getenv("CRON_SECRET", "")
        self.KEEPALIVE_ENABLED: bool = enabled("KEEPALIVE_ENABLED")
        self.KEEPALIVE_INTERVAL_SECONDS: int = int(os.getenv("KEEPALIVE_INTERVAL_SECONDS", "300"))

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def supabase_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_KEY)


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
