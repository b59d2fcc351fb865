from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


class ConfigError(RuntimeError):
    pass


def _int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def _float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    """
    Process configuration, read from the environment.

    Entry points call `load_dotenv()` first, so a local `.env` file works
    the same as real environment variables.
    """

    db_backend: str = "sqlite"
    db_path: str = "rewards.db"
    database_url: Optional[str] = None
    discord_token: Optional[str] = None
    kicklet_api_token: Optional[str] = None
    kick_channel_id: Optional[str] = None
    kicklet_timeout: float = 5.0
    kicklet_retries: int = 2
    kicklet_sync_seconds: int = 30
    keno_paytable_path: Optional[str] = None
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 5000
    reconcile_after_seconds: int = 600

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        backend = env.get("DB_BACKEND", "sqlite").strip().lower()
        if backend not in ("sqlite", "postgres"):
            raise ConfigError(f"DB_BACKEND must be 'sqlite' or 'postgres', got {backend!r}")
        database_url = env.get("DATABASE_URL") or None
        if backend == "postgres" and not database_url:
            raise ConfigError("DATABASE_URL is required when DB_BACKEND=postgres")

        return cls(
            db_backend=backend,
            db_path=env.get("DB_PATH", "rewards.db"),
            database_url=database_url,
            discord_token=env.get("DISCORD_TOKEN") or None,
            kicklet_api_token=env.get("KICKLET_API_TOKEN") or None,
            kick_channel_id=env.get("KICK_CHANNEL_ID") or None,
            kicklet_timeout=_float(env, "KICKLET_TIMEOUT", 5.0),
            kicklet_retries=_int(env, "KICKLET_RETRIES", 2),
            kicklet_sync_seconds=_int(env, "KICKLET_SYNC_SECONDS", 30),
            keno_paytable_path=env.get("KENO_PAYTABLE_PATH") or None,
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            host=env.get("HOST", "0.0.0.0"),
            port=_int(env, "PORT", 5000),
            reconcile_after_seconds=_int(env, "RECONCILE_AFTER_SECONDS", 600),
        )

    @property
    def mirror_enabled(self) -> bool:
        return bool(self.kicklet_api_token and self.kick_channel_id)

    @property
    def db_params(self) -> dict:
        """psycopg2 connection keyword arguments."""

        return {"dsn": self.database_url}
