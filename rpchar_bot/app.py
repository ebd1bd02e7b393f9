from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
from dataclasses import dataclass
from pathlib import Path

from .admin.socket import AdminSocket
from .cache.repository import ModelRepository
from .config import Settings
from .db.adapter import DbAdapter
from .db.factory import build_db_adapter

logger = logging.getLogger("rpchar_bot")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def _is_process_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def _acquire_instance_lock(lock_path: Path) -> None:
    lock_path.parent.mkdir(parents=True, exist_ok=True)

    if lock_path.exists():
        stale_pid = 0
        with contextlib.suppress(ValueError, OSError):
            stale_pid = int(lock_path.read_text(encoding="utf-8").strip() or "0")
        if stale_pid > 0 and _is_process_alive(stale_pid):
            raise RuntimeError(f"Bot is already running (pid={stale_pid}). Stop it before starting a new one.")
        with contextlib.suppress(OSError):
            lock_path.unlink()

    lock_path.write_text(str(os.getpid()), encoding="utf-8")


def _release_instance_lock(lock_path: Path) -> None:
    with contextlib.suppress(OSError):
        if lock_path.exists():
            lock_path.unlink()


@dataclass(slots=True)
class BotServices:
    settings: Settings
    db: DbAdapter
    repository: ModelRepository
    admin_socket: AdminSocket | None = None


def build_services(settings: Settings) -> BotServices:
    db = build_db_adapter(settings)
    repository = ModelRepository.from_settings(db, settings)
    admin_socket = None
    if settings.admin_socket_enabled:
        admin_socket = AdminSocket(repository, host=settings.admin_socket_host, port=settings.admin_socket_port)
    return BotServices(settings=settings, db=db, repository=repository, admin_socket=admin_socket)


async def start_services(services: BotServices) -> None:
    await services.db.init()
    services.repository.start()
    if services.admin_socket is not None:
        await services.admin_socket.start()


async def stop_services(services: BotServices) -> None:
    if services.admin_socket is not None:
        with contextlib.suppress(Exception):
            await services.admin_socket.stop()
    try:
        await services.repository.stop(flush=True)
    finally:
        await services.db.close()
    stats = services.repository.stats
    logger.info(
        "Model cache stopped: %s write-back(s) ok, %s failed, %s group eviction(s), %s unsaved model(s) evicted",
        stats.succeeded,
        stats.failed,
        sum(cache.evictions for cache in services.repository.caches.values()),
        stats.evicted_unsaved,
    )


async def _run(settings: Settings) -> None:
    services = build_services(settings)
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on Windows event loops.
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop_event.set)

    await start_services(services)
    try:
        await stop_event.wait()
    finally:
        await stop_services(services)


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    settings.validate()
    lock_path = settings.sqlite_path.parent / "rpchar_bot.pid"
    _acquire_instance_lock(lock_path)
    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Shutdown requested, exiting.")
    finally:
        _release_instance_lock(lock_path)


if __name__ == "__main__":
    main()
