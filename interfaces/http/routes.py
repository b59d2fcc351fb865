from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, List, Literal, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from application import presenters
from application.accounts import AccountService
from application.services import GameService
from domain.errors import SettlementFault, WagerError
from interfaces.mirror_sync import DEFAULT_SYNC_SECONDS, sync_forever, sync_once
from interfaces.operations import run_operation
from interfaces.schemas import (
    Auth,
    BlackjackStartRequest,
    CreateUser,
    DicePlayRequest,
    KenoPlayRequest,
    LimboPlayRequest,
    LinkDiscord,
    LinkKick,
    MinesRevealRequest,
    MinesStartRequest,
    NoBody,
    PointsChange,
    describe_validation_error,
)
from interfaces.websocket.handlers import register_websocket

_NO_BODY = NoBody()


def _games_router(games: GameService) -> APIRouter:
    router = APIRouter(prefix="/api/games")

    @router.post("/dice/play")
    def play_dice(body: DicePlayRequest) -> Dict[str, Any]:
        return run_operation("dice:play", games, body.user_id, body)

    @router.post("/limbo/play")
    def play_limbo(body: LimboPlayRequest) -> Dict[str, Any]:
        return run_operation("limbo:play", games, body.user_id, body)

    @router.post("/keno/play")
    def play_keno(body: KenoPlayRequest) -> Dict[str, Any]:
        return run_operation("keno:play", games, body.user_id, body)

    @router.get("/mines/active/{user_id}")
    def mines_active(user_id: str) -> Dict[str, Any]:
        return run_operation("mines:active", games, user_id, _NO_BODY)

    @router.post("/mines/start")
    def mines_start(body: MinesStartRequest) -> Dict[str, Any]:
        return run_operation("mines:start", games, body.user_id, body)

    @router.post("/mines/reveal")
    def mines_reveal(body: MinesRevealRequest) -> Dict[str, Any]:
        return run_operation("mines:reveal", games, body.user_id, body)

    @router.post("/mines/cashout")
    def mines_cashout(body: Auth) -> Dict[str, Any]:
        return run_operation("mines:cashout", games, body.user_id, _NO_BODY)

    @router.get("/blackjack/active/{user_id}")
    def blackjack_active(user_id: str) -> Dict[str, Any]:
        return run_operation("blackjack:active", games, user_id, _NO_BODY)

    @router.post("/blackjack/start")
    def blackjack_start(body: BlackjackStartRequest) -> Dict[str, Any]:
        return run_operation("blackjack:start", games, body.user_id, body)

    @router.post("/blackjack/{action}")
    def blackjack_action(
        action: Literal["hit", "stand", "double", "split"],
        body: Auth,
    ) -> Dict[str, Any]:
        return run_operation(f"blackjack:{action}", games, body.user_id, _NO_BODY)

    @router.get("/history/{user_id}")
    def history(user_id: str) -> List[Dict[str, Any]]:
        return run_operation("history:get", games, user_id, _NO_BODY)

    return router


def _users_router(accounts: AccountService) -> APIRouter:
    router = APIRouter(prefix="/api/users")

    @router.get("")
    def list_users() -> List[Dict[str, Any]]:
        return [presenters.user_payload(u) for u in accounts.list_users()]

    @router.post("", status_code=201)
    def create_user(body: CreateUser) -> Dict[str, Any]:
        return presenters.user_payload(accounts.register(body.user_id, body.display_name))

    @router.get("/{user_id}/points")
    def get_points(user_id: str) -> Dict[str, Any]:
        return {"points": accounts.get(user_id).balance}

    @router.post("/{user_id}/points")
    def change_points(user_id: str, body: PointsChange) -> Dict[str, Any]:
        accounts.change_points(user_id, body.points, body.action)
        return presenters.user_payload(accounts.get(user_id))

    @router.post("/{user_id}/link-kick")
    def link_kick(user_id: str, body: LinkKick) -> Dict[str, Any]:
        return presenters.user_payload(accounts.link_kick(user_id, body.username))

    @router.post("/{user_id}/link-discord")
    def link_discord(user_id: str, body: LinkDiscord) -> Dict[str, Any]:
        return presenters.user_payload(accounts.link_discord(user_id, body.discord_id))

    return router


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(WagerError)
    async def wager_error(request: Request, exc: WagerError) -> JSONResponse:
        return JSONResponse(status_code=exc.status, content=presenters.error_payload(exc))

    @app.exception_handler(SettlementFault)
    async def settlement_fault(request: Request, exc: SettlementFault) -> JSONResponse:
        # Already logged at CRITICAL by the engine.
        return JSONResponse(status_code=exc.status, content=presenters.error_payload(exc))

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": describe_validation_error(exc), "code": "validation_error"},
        )

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception) -> JSONResponse:
        # Starlette logs the traceback after this response is sent.
        return JSONResponse(status_code=500, content={"error": "Something went wrong", "code": "internal_error"})


def _mirror_sync_lifespan(sync: Optional[Callable[[], int]], interval: float):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if sync is None:
            yield
            return
        await sync_once(sync)
        task = asyncio.create_task(sync_forever(sync, interval))
        try:
            yield
        finally:
            task.cancel()

    return lifespan


def create_web_app(
    games: GameService,
    accounts: AccountService,
    mirror_sync: Optional[Callable[[], int]] = None,
    sync_seconds: float = DEFAULT_SYNC_SECONDS,
) -> FastAPI:
    """
    Build the FastAPI app serving both the request/response API and the
    `/ws` WebSocket endpoint.

    `mirror_sync`, when given, runs once at startup and then every
    `sync_seconds` while the app is up.
    """

    app = FastAPI(title="Rewards wager engine", lifespan=_mirror_sync_lifespan(mirror_sync, sync_seconds))
    _install_error_handlers(app)
    app.include_router(_games_router(games))
    app.include_router(_users_router(accounts))
    register_websocket(app, games, accounts)

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    return app
