from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError
from starlette.concurrency import run_in_threadpool

from application import presenters
from application.accounts import AccountService
from application.services import GameService
from domain.errors import SettlementFault, WagerError
from interfaces.operations import OPERATIONS
from interfaces.schemas import Auth, describe_validation_error

logger = logging.getLogger(__name__)


def _frame(kind: str, data: Any) -> Dict[str, Any]:
    return {"type": kind, "data": data}


def _error(message: str, code: str) -> Dict[str, Any]:
    return _frame("error", {"error": message, "code": code})


class Connection:
    """
    One client connection. Holds the authenticated user, if any, and turns
    each incoming `{type, data}` message into exactly one reply.
    """

    def __init__(self, games: GameService, accounts: AccountService) -> None:
        self._games = games
        self._accounts = accounts
        self.user_id: Optional[str] = None

    async def handle(self, message: Any) -> Dict[str, Any]:
        if not isinstance(message, dict) or not isinstance(message.get("type"), str):
            return _error("Messages must be objects with a 'type'", "validation_error")

        kind = message["type"]
        data = message.get("data") or {}
        try:
            if kind == "auth":
                return await self._authenticate(data)

            operation = OPERATIONS.get(kind)
            if operation is None:
                return _error(f"Unknown message type: {kind}", "unknown_type")
            if self.user_id is None:
                return _error("Not authenticated", "unauthenticated")

            request = operation.schema.model_validate(data)
            payload = await run_in_threadpool(operation.run, self._games, self.user_id, request)
            return _frame(operation.reply, payload)
        except PydanticValidationError as exc:
            return _error(describe_validation_error(exc), "validation_error")
        except (WagerError, SettlementFault) as exc:
            return _error(exc.message, exc.code)
        except Exception:
            logger.exception("WebSocket message %s failed for user %s", kind, self.user_id)
            return _error("Something went wrong", "internal_error")

    async def _authenticate(self, data: Any) -> Dict[str, Any]:
        auth = Auth.model_validate(data)
        user = await run_in_threadpool(self._accounts.get, auth.user_id)
        self.user_id = user.id
        logger.debug("WebSocket authenticated as %s", user.id)
        return _frame("auth:success", presenters.user_payload(user))


def register_websocket(app: FastAPI, games: GameService, accounts: AccountService) -> None:
    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        await websocket.accept()
        connection = Connection(games, accounts)
        try:
            while True:
                try:
                    message = await websocket.receive_json()
                except ValueError:
                    await websocket.send_json(_error("Invalid JSON", "validation_error"))
                    continue
                await websocket.send_json(await connection.handle(message))
        except WebSocketDisconnect:
            logger.debug("WebSocket client %s disconnected", connection.user_id)
