"""
Central configuration via pydantic-settings.
All secrets are read from environment variables / .env file.
"""
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Telegram ──────────────────────────────────────────────────────────────
    BOT_TOKEN: str

    # Raw comma-separated admin IDs, e.g. "123,456"
    ADMIN_IDS: str = ""

    # ── RECUP backend ─────────────────────────────────────────────────────────
    API_BASE_URL: str

    CATALOG_TIMEOUT: float = 10.0
    SUBMIT_TIMEOUT: float = 60.0
    CATALOG_CACHE_SECONDS: float = 5 * 60
    REGISTRATION_CACHE_SECONDS: float = 2 * 60

    # ── Midtrans Snap ─────────────────────────────────────────────────────────
    MIDTRANS_CLIENT_KEY: str = ""
    MIDTRANS_SNAP_BASE: str = "https://app.sandbox.midtrans.com/snap"

    # ── Landing menu links ────────────────────────────────────────────────────
    GUIDEBOOK_URL: str = ""
    INSTAGRAM_URL: str = "https://instagram.com/recisshs"

    # ─────────────────────────────────────────────────────────────────────────

    @property
    def admin_ids_list(self) -> list[int]:
        """Parse ADMIN_IDS env var to a list of integers."""
        if not self.ADMIN_IDS:
            return []
        return [int(x.strip()) for x in self.ADMIN_IDS.split(",") if x.strip().isdigit()]

    @property
    def api_base_url(self) -> str:
        """Backend URL without a trailing slash so paths can be joined as-is."""
        return self.API_BASE_URL.rstrip("/")


settings = Settings()
