from __future__ import annotations
import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

def _int(env_name: str, fallback: int) -> int:
    raw = os.getenv(env_name)
    try:
        return int(raw) if raw else fallback
    except ValueError:
        return fallback

@dataclass
class Config:
    # CheapShark
    cheapshark_base_url: str = (os.getenv("CHEAPSHARK_BASE_URL") or "https://www.cheapshark.com/api/1.0").rstrip("/")
    http_timeout: int = _int("HTTP_TIMEOUT", 20)
    search_limit: int = _int("SEARCH_LIMIT", 5)
    upstream_limit: int = _int("UPSTREAM_LIMIT", 10)

    # Polling
    poll_minutes: int = _int("POLL_MINUTES", 60)

    # Discord
    discord_webhook: str | None = os.getenv("DISCORD_WEBHOOK_URL") or None
    discord_bot_token: str | None = os.getenv("DISCORD_BOT_TOKEN") or None
    discord_guild_id: str | None = os.getenv("DISCORD_GUILD_ID") or None

    # Storage
    store_backend: str = (os.getenv("STORE_BACKEND") or "json").lower()
    data_dir: str = os.path.abspath(os.getenv("DATA_DIR") or os.path.join(os.getcwd(), "data"))

    # Time & hygiene
    timezone: str = os.getenv("TIMEZONE") or "America/Los_Angeles"
    quiet_hours: str = os.getenv("QUIET_HOURS") or "23:00-07:00"
    log_level: str = (os.getenv("LOG_LEVEL") or "INFO").upper()

    @property
    def poll_seconds(self) -> int:
        return max(60, self.poll_minutes * 60)

cfg = Config()
