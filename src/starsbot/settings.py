"""Bot configuration loaded from environment variables.

All settings are read once per process and cached. Tests call
reset_settings() after changing the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

DEFAULT_API_BASE = "https://api.telegram.org"
DEFAULT_CHANNEL_ID = -1001898840240
DEFAULT_CHANNEL_LINK = "https://t.me/+onqHnd30AFA5ZDVk"
DEFAULT_CONTACT_LINK = "https://onlyfans.com/cleoyleo"
DEFAULT_RETRACTION_DELAY_MINUTES = 60
DEFAULT_STATS_TIMEZONE = "Europe/Madrid"
DEFAULT_HTTP_TIMEOUT = 10

PACKAGE_DATA_DIR = Path(__file__).resolve().parent / "data"


@dataclass(frozen=True)
class BotSettings:
    """Runtime configuration for the bot.

    Attributes:
        bot_token: Telegram Bot API token (TELEGRAM_BOT_TOKEN).
        api_base: Bot API base URL, overridable for local Bot API servers.
        http_timeout: Timeout (seconds) for every Bot API request.
        webhook_secret: Expected X-Telegram-Bot-Api-Secret-Token, if any.
        admin_user_id: The single privileged Telegram user id.
        channel_id: Channel whose membership gates content access.
        channel_link: Invite link shown in the subscription prompt.
        contact_link: External contact link shown in error replies.
        retraction_delay_minutes: Lifetime of paid content messages.
        stats_timezone: IANA zone used to bucket daily statistics.
        database_url: Registry DSN. Empty means "registry not configured".
        catalog_dir: Directory holding the JSON content catalog.
        stats_api_token: Bearer token required by /stats. Empty leaves it open.
    """

    bot_token: str = ""
    api_base: str = DEFAULT_API_BASE
    http_timeout: int = DEFAULT_HTTP_TIMEOUT
    webhook_secret: str = ""
    admin_user_id: int | None = None
    channel_id: int = DEFAULT_CHANNEL_ID
    channel_link: str = DEFAULT_CHANNEL_LINK
    contact_link: str = DEFAULT_CONTACT_LINK
    retraction_delay_minutes: int = DEFAULT_RETRACTION_DELAY_MINUTES
    stats_timezone: str = DEFAULT_STATS_TIMEZONE
    database_url: str = ""
    catalog_dir: Path = PACKAGE_DATA_DIR
    stats_api_token: str = ""

    @property
    def registry_configured(self) -> bool:
        return bool(self.database_url)


def _int_env(name: str, default: int | None) -> int | None:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None


def load_settings() -> BotSettings:
    """Build settings from the current environment (uncached)."""
    catalog_dir = os.environ.get("CATALOG_DIR", "")
    return BotSettings(
        bot_token=os.environ.get("TELEGRAM_BOT_TOKEN", ""),
        api_base=os.environ.get("TELEGRAM_API_BASE", DEFAULT_API_BASE).rstrip("/"),
        http_timeout=_int_env("TELEGRAM_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
        webhook_secret=os.environ.get("TELEGRAM_WEBHOOK_SECRET", ""),
        admin_user_id=_int_env("ADMIN_USER_ID", None),
        channel_id=_int_env("CHANNEL_ID", DEFAULT_CHANNEL_ID),
        channel_link=os.environ.get("CHANNEL_LINK", DEFAULT_CHANNEL_LINK),
        contact_link=os.environ.get("CONTACT_LINK", DEFAULT_CONTACT_LINK),
        retraction_delay_minutes=_int_env(
            "RETRACTION_DELAY_MINUTES", DEFAULT_RETRACTION_DELAY_MINUTES
        ),
        stats_timezone=os.environ.get("STATS_TIMEZONE", DEFAULT_STATS_TIMEZONE),
        database_url=os.environ.get("DATABASE_URL", ""),
        catalog_dir=Path(catalog_dir) if catalog_dir else PACKAGE_DATA_DIR,
        stats_api_token=os.environ.get("STATS_API_TOKEN", ""),
    )


@lru_cache(maxsize=1)
def get_settings() -> BotSettings:
    """Process-wide settings."""
    return load_settings()


def reset_settings() -> None:
    """Drop the cached settings (tests)."""
    get_settings.cache_clear()
