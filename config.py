"""Configuration loaded from environment variables (.env supported)."""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv


class ConfigError(RuntimeError):
    """A required setting is missing or malformed."""


@dataclass(frozen=True)
class Settings:
    bot_token: str
    database_url: str
    admin_id: int
    webhook_secret: str = ""
    supabase_url: str = ""
    supabase_key: str = ""
    bot_name: str = "Harshportal Support Bot"
    support_email: str = "support@harshportal.in"
    support_handle: str = "@harshportal"
    ticket_list_limit: int = 10
    log_level: str = "INFO"
    run_mode: str = "polling"
    webhook_url: str = ""
    webhook_path: str = "/api/telegram"
    host: str = "0.0.0.0"
    port: int = 8000

    @property
    def auth_admin_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def _int(env: Mapping[str, str], key: str, default: Optional[int] = None) -> int:
    raw = (env.get(key) or "").strip()
    if not raw:
        if default is None:
            raise ConfigError(f"{key} is not set")
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from e


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Read settings; missing credentials are fatal for the whole process."""
    if env is None:
        load_dotenv()
        env = os.environ

    missing = [k for k in ("TELEGRAM_BOT_TOKEN", "DATABASE_URL", "ADMIN_ID") if not (env.get(k) or "").strip()]
    if missing:
        raise ConfigError("Missing " + " / ".join(missing))

    run_mode = env.get("RUN_MODE", "polling").strip().lower()
    if run_mode not in ("polling", "webhook"):
        raise ConfigError(f"RUN_MODE must be 'polling' or 'webhook', got {run_mode!r}")

    return Settings(
        bot_token=env["TELEGRAM_BOT_TOKEN"].strip(),
        database_url=env["DATABASE_URL"].strip(),
        admin_id=_int(env, "ADMIN_ID"),
        webhook_secret=env.get("TG_WEBHOOK_SECRET", "").strip(),
        supabase_url=env.get("SUPABASE_URL", "").strip(),
        supabase_key=env.get("SUPABASE_KEY", "").strip(),
        bot_name=env.get("BOT_NAME", Settings.bot_name),
        support_email=env.get("SUPPORT_EMAIL", Settings.support_email),
        support_handle=env.get("SUPPORT_HANDLE", Settings.support_handle),
        ticket_list_limit=_int(env, "TICKET_LIST_LIMIT", 10),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        run_mode=run_mode,
        webhook_url=env.get("WEBHOOK_URL", "").strip(),
        webhook_path=env.get("WEBHOOK_PATH", "/api/telegram").strip() or "/api/telegram",
        host=env.get("HOST", "0.0.0.0"),
        port=_int(env, "PORT", 8000),
    )
