"""
Game operations by message name.

Both transports go through this table: the WebSocket dispatcher looks
operations up by the incoming `type`, the HTTP routes call the same entries
directly. Each entry parses into the same schema, calls the same engine
method and renders through the same presenter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Type

from application import presenters
from application.services import GameService

from .schemas import (
    BlackjackStart,
    DicePlay,
    KenoPlay,
    LimboPlay,
    MinesReveal,
    MinesStart,
    NoBody,
    Schema,
)


@dataclass(frozen=True)
class Operation:
    schema: Type[Schema]
    run: Callable[[GameService, str, Any], Any]
    reply: str


def _dice(games: GameService, owner: str, req: DicePlay):
    return presenters.dice_payload(games.play_dice(owner, req.bet_amount, req.target_number, req.direction))


def _limbo(games: GameService, owner: str, req: LimboPlay):
    return presenters.limbo_payload(games.play_limbo(owner, req.bet_amount, req.target_multiplier))


def _keno(games: GameService, owner: str, req: KenoPlay):
    return presenters.keno_payload(games.play_keno(owner, req.bet_amount, req.selected_numbers, req.risk))


def _mines_start(games: GameService, owner: str, req: MinesStart):
    return presenters.mines_started_payload(games.start_mines(owner, req.bet_amount, req.mines_count))


def _mines_reveal(games: GameService, owner: str, req: MinesReveal):
    return presenters.mines_reveal_payload(games.reveal_mine(owner, req.position))


def _mines_cashout(games: GameService, owner: str, req: NoBody):
    return presenters.mines_cashout_payload(games.cashout_mines(owner))


def _mines_active(games: GameService, owner: str, req: NoBody):
    return presenters.mines_active_payload(games.active_mines(owner))


def _blackjack_start(games: GameService, owner: str, req: BlackjackStart):
    return presenters.blackjack_payload(games.start_blackjack(owner, req.bet_amount))


def _blackjack_action(method: str):
    def run(games: GameService, owner: str, req: NoBody):
        return presenters.blackjack_payload(getattr(games, method)(owner))

    return run


def _blackjack_active(games: GameService, owner: str, req: NoBody):
    return presenters.blackjack_active_payload(games.active_blackjack(owner))


def _history(games: GameService, owner: str, req: NoBody):
    return presenters.history_payload(games.history(owner))


OPERATIONS: Dict[str, Operation] = {
    "dice:play": Operation(DicePlay, _dice, "dice:result"),
    "limbo:play": Operation(LimboPlay, _limbo, "limbo:result"),
    "keno:play": Operation(KenoPlay, _keno, "keno:result"),
    "mines:start": Operation(MinesStart, _mines_start, "mines:started"),
    "mines:reveal": Operation(MinesReveal, _mines_reveal, "mines:revealed"),
    "mines:cashout": Operation(NoBody, _mines_cashout, "mines:cashedout"),
    "mines:active": Operation(NoBody, _mines_active, "mines:active"),
    "blackjack:start": Operation(BlackjackStart, _blackjack_start, "blackjack:started"),
    "blackjack:hit": Operation(NoBody, _blackjack_action("blackjack_hit"), "blackjack:hit"),
    "blackjack:stand": Operation(NoBody, _blackjack_action("blackjack_stand"), "blackjack:stand"),
    "blackjack:double": Operation(NoBody, _blackjack_action("blackjack_double"), "blackjack:double"),
    "blackjack:split": Operation(NoBody, _blackjack_action("blackjack_split"), "blackjack:split"),
    "blackjack:active": Operation(NoBody, _blackjack_active, "blackjack:active"),
    "history:get": Operation(NoBody, _history, "history:result"),
}


def run_operation(name: str, games: GameService, owner: str, request: Any) -> Any:
    return OPERATIONS[name].run(games, owner, request)
