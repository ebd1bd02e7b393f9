from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv


load_dotenv()


def _env_lookup(name: str, aliases: tuple[str, ...] = ()) -> str | None:
    for key in (name, *aliases):
        # Be tolerant to UTF-8 BOM accidentally saved in .env key names.
        for candidate in (key, f"\ufeff{key}"):
            raw = os.getenv(candidate)
            if raw is not None:
                return raw
    return None


def _env_bool(name: str, default: bool, aliases: tuple[str, ...] = ()) -> bool:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int, aliases: tuple[str, ...] = ()) -> int:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float, aliases: tuple[str, ...] = ()) -> float:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _env_str(name: str, default: str, aliases: tuple[str, ...] = ()) -> str:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    value = raw.strip()
    return value if value else default


def parse_cache_sizes(raw: str) -> dict[str, int]:
    """Parse ``"channels=50, users=200"`` into ``{"channels": 50, "users": 200}``.

    Malformed chunks are skipped.
    """
    sizes: dict[str, int] = {}
    for chunk in (raw or "").split(","):
        name, sep, value = chunk.partition("=")
        name = name.strip().lower()
        if not sep or not name:
            continue
        try:
            sizes[name] = int(value.strip())
        except ValueError:
            continue
    return sizes


@dataclass(slots=True)
class Settings:
    db_backend: str = "sqlite"
    sqlite_path: Path = Path("./data/rpchar_bot.db")
    postgres_dsn: str = ""

    cache_flush_interval_seconds: float = 15.0
    cache_default_size: int = 100
    cache_default_priority: int = 1
    cache_sizes: dict[str, int] = field(default_factory=dict)
    cache_write_concurrency: int = 8
    cache_write_failure_alert_threshold: int = 5

    admin_socket_enabled: bool = False
    admin_socket_host: str = "127.0.0.1"
    admin_socket_port: int = 8765

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            db_backend=_env_str("DB_BACKEND", "sqlite").lower(),
            sqlite_path=Path(_env_str("SQLITE_PATH", "./data/rpchar_bot.db")).expanduser(),
            postgres_dsn=_env_str("POSTGRES_DSN", "", aliases=("DATABASE_URL",)),
            cache_flush_interval_seconds=_env_float("CACHE_FLUSH_INTERVAL_SECONDS", 15.0),
            cache_default_size=_env_int("CACHE_DEFAULT_SIZE", 100),
            cache_default_priority=_env_int("CACHE_DEFAULT_PRIORITY", 1),
            cache_sizes=parse_cache_sizes(_env_str("CACHE_SIZES", "")),
            cache_write_concurrency=_env_int("CACHE_WRITE_CONCURRENCY", 8),
            cache_write_failure_alert_threshold=_env_int("CACHE_WRITE_FAILURE_ALERT_THRESHOLD", 5),
            admin_socket_enabled=_env_bool("ADMIN_SOCKET_ENABLED", False, aliases=("WEBSOCKET_ENABLED",)),
            admin_socket_host=_env_str("ADMIN_SOCKET_HOST", "127.0.0.1"),
            admin_socket_port=_env_int("ADMIN_SOCKET_PORT", 8765),
            log_level=_env_str("LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> None:
        if self.db_backend not in {"sqlite", "postgres"}:
            raise ValueError("DB_BACKEND must be 'sqlite' or 'postgres'")
        if self.db_backend == "postgres" and not self.postgres_dsn:
            raise ValueError("POSTGRES_DSN is required when DB_BACKEND=postgres")

        if self.cache_flush_interval_seconds <= 0:
            raise ValueError("CACHE_FLUSH_INTERVAL_SECONDS must be > 0")
        if self.cache_default_size < 1:
            raise ValueError("CACHE_DEFAULT_SIZE must be >= 1")
        for name, size in self.cache_sizes.items():
            if size < 1:
                raise ValueError(f"CACHE_SIZES entry '{name}' must be >= 1")
        if self.cache_write_concurrency < 1:
            raise ValueError("CACHE_WRITE_CONCURRENCY must be >= 1")
        if self.cache_write_failure_alert_threshold < 1:
            raise ValueError("CACHE_WRITE_FAILURE_ALERT_THRESHOLD must be >= 1")

        if not (0 < self.admin_socket_port < 65536):
            raise ValueError("ADMIN_SOCKET_PORT must be in [1, 65535]")
