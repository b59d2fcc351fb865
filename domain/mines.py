from __future__ import annotations

from dataclasses import dataclass
from typing import List

from . import layout_codec
from .errors import IllegalAction, ValidationError
from .models import MinesGame
from .payouts import BOARD_SIZE, payout_for, validate_mine_count


@dataclass(frozen=True)
class RevealOutcome:
    position: int
    hit_mine: bool
    finished: bool
    multiplier: float
    payout: int


def new_game(owner: str, wager_id: str, bet: int, mine_count: int, rng) -> MinesGame:
    """Lay `mine_count` mines on a fresh board. The bet is already debited."""

    validate_mine_count(mine_count)
    mines = rng.sample(range(BOARD_SIZE), mine_count)
    key = layout_codec.generate_key()
    return MinesGame(
        owner=owner,
        wager_id=wager_id,
        bet=bet,
        mine_count=mine_count,
        mines=mines,
        layout_key=key,
        layout_token=layout_codec.encode_layout(mines, key),
    )


def validate_position(position: int) -> None:
    if not 0 <= position < BOARD_SIZE:
        raise ValidationError(f"Position must be between 0 and {BOARD_SIZE - 1}")


def reveal(game: MinesGame, position: int) -> RevealOutcome:
    """
    Reveal one tile, mutating `game`.

    The caller persists or deletes the session depending on `finished`.
    """

    validate_position(position)
    if position in game.revealed:
        raise IllegalAction("Tile already revealed")

    if position in game.mines:
        return RevealOutcome(
            position=position,
            hit_mine=True,
            finished=True,
            multiplier=0.0,
            payout=0,
        )

    game.revealed.append(position)
    multiplier = game.multiplier
    finished = len(game.revealed) == game.safe_tiles
    return RevealOutcome(
        position=position,
        hit_mine=False,
        finished=finished,
        multiplier=multiplier,
        payout=payout_for(game.bet, multiplier) if finished else 0,
    )


def cashout(game: MinesGame) -> RevealOutcome:
    if not game.revealed:
        raise IllegalAction("Cannot cashout without revealing any tiles")
    multiplier = game.multiplier
    return RevealOutcome(
        position=game.revealed[-1],
        hit_mine=False,
        finished=True,
        multiplier=multiplier,
        payout=payout_for(game.bet, multiplier),
    )


def mine_positions(game: MinesGame) -> List[int]:
    return sorted(game.mines)
