from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Sequence

from aiohttp import test_utils


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from rpchar_bot.admin.socket import AdminSocket  # noqa: E402
from rpchar_bot.cache.repository import ModelRepository  # noqa: E402
from rpchar_bot.db.adapter import QueryResult  # noqa: E402
from rpchar_bot.models import MODEL_TYPES, GuildUser, User  # noqa: E402


class _EmptyDb:
    backend_name = "fake"

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        return QueryResult()


async def _loaded_repository() -> ModelRepository:
    repo = ModelRepository(_EmptyDb(), model_types=MODEL_TYPES, flush_interval=0)  # type: ignore[arg-type]
    await repo.fetch_by_query(User, "1")
    await repo.fetch_by_query(User, "2")
    await repo.fetch_by_query(GuildUser, {"user_id": "1", "guild_id": "9"})
    return repo


def test_userclear_message_drops_the_users_cache_entries() -> None:
    async def scenario() -> None:
        repo = await _loaded_repository()
        socket = AdminSocket(repo)

        handled = await socket.handle_message(json.dumps({"command": "userclear", "payload": "1"}))

        assert handled is True
        assert len(repo.cache_for(User)) == 1
        assert len(repo.cache_for(GuildUser)) == 0

    asyncio.run(scenario())


def test_invalid_messages_are_ignored() -> None:
    async def scenario() -> None:
        repo = await _loaded_repository()
        socket = AdminSocket(repo)

        assert await socket.handle_message("not json") is False
        assert await socket.handle_message(json.dumps(["userclear", "1"])) is False
        assert await socket.handle_message(json.dumps({"command": "userclear"})) is False
        assert await socket.handle_message(json.dumps({"command": "reboot", "payload": "1"})) is False
        assert len(repo.cache_for(User)) == 2

    asyncio.run(scenario())


def test_websocket_endpoint_acknowledges_each_frame() -> None:
    async def scenario() -> None:
        repo = await _loaded_repository()
        socket = AdminSocket(repo)

        async with test_utils.TestClient(test_utils.TestServer(socket.build_app())) as client:
            ws = await client.ws_connect("/ws")
            await ws.send_str(json.dumps({"command": "userclear", "payload": 2}))
            assert await ws.receive_json() == {"ok": True}
            await ws.send_str("garbage")
            assert await ws.receive_json() == {"ok": False}
            await ws.close()

        assert repo.cache_for(User).query_keys() == [(("id", "1"),)]

    asyncio.run(scenario())
