from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable

from aiohttp import WSMsgType, web

from ..cache.repository import ModelRepository

logger = logging.getLogger("rpchar_bot")

CommandHandler = Callable[[Any], Awaitable[None] | None]


class AdminSocket:
    """Websocket endpoint used by operators to push cache invalidation commands.

    Every text frame is a JSON object ``{"command": ..., "payload": ...}``.
    Frames that are not valid commands are ignored.
    """

    def __init__(self, repository: ModelRepository, *, host: str = "127.0.0.1", port: int = 8765) -> None:
        self.repository = repository
        self.host = host
        self.port = port
        self._runner: web.AppRunner | None = None
        self._handlers: dict[str, CommandHandler] = {
            "userclear": self._handle_userclear,
        }

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/ws", self._websocket_handler)
        return app

    async def start(self) -> None:
        if self._runner is not None:
            return
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("Admin socket listening on %s:%s", self.host, self.port)

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None

    async def _websocket_handler(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        logger.info("Incoming admin connection from %s", request.remote)
        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                handled = await self.handle_message(msg.data)
                await ws.send_json({"ok": handled})
            elif msg.type == WSMsgType.ERROR:
                logger.warning("Admin connection from %s closed with error: %s", request.remote, ws.exception())
        logger.info("Admin connection from %s disconnected", request.remote)
        return ws

    async def handle_message(self, raw: str) -> bool:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            logger.debug("Ignoring malformed admin message: %r", raw)
            return False
        if not isinstance(data, dict) or "command" not in data or "payload" not in data:
            logger.debug("Ignoring admin message without command/payload: %r", raw)
            return False

        command = str(data["command"] or "").strip().lower()
        handler = self._handlers.get(command)
        if handler is None:
            logger.warning("Unknown admin command %s", command)
            return False
        result = handler(data["payload"])
        if result is not None:
            await result
        return True

    def _handle_userclear(self, payload: Any) -> None:
        user_id = str(payload or "").strip()
        if not user_id:
            logger.warning("userclear command without a user id")
            return
        logger.info("Received cache refresh for user %s", user_id)
        self.repository.clear_user(user_id)
