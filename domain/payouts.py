"""
Payout engine: outcome draws and payout formulas for the single-round games.

Every function here is pure apart from the `draw_*` helpers, which take the
random source as an argument so callers (and tests) decide where randomness
comes from.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from .errors import ValidationError

RETURN_TO_PLAYER = 0.99

DICE_MIN_TARGET = 0.0
DICE_MAX_TARGET = 100.0
DIRECTIONS = ("under", "over")

LIMBO_MIN_TARGET = 1.01
LIMBO_MAX_TARGET = 1000.0

KENO_POOL = 40
KENO_DRAWS = 10
KENO_MAX_PICKS = 10

BOARD_SIZE = 25
MIN_MINES = 1
MAX_MINES = 24


@dataclass(frozen=True)
class DiceOutcome:
    roll: float
    target: float
    direction: str
    won: bool
    multiplier: float
    payout: int


@dataclass(frozen=True)
class LimboOutcome:
    crash_point: float
    target: float
    won: bool
    payout: int


@dataclass(frozen=True)
class KenoOutcome:
    bet: int
    picks: List[int]
    drawn: List[int]
    hits: int
    risk: str
    multiplier: float
    payout: int

    @property
    def won(self) -> bool:
        return self.payout > self.bet


def payout_for(bet: int, multiplier: float) -> int:
    return int(math.floor(bet * multiplier))


# ---------------------------------------------------------------------------
# Dice
# ---------------------------------------------------------------------------


def validate_dice(target: float, direction: str) -> None:
    if direction not in DIRECTIONS:
        raise ValidationError("Direction must be 'under' or 'over'")
    if not DICE_MIN_TARGET <= target <= DICE_MAX_TARGET:
        raise ValidationError("Target number must be between 0 and 100")


def dice_multiplier(target: float, direction: str) -> float:
    """Multiplier paid on a winning roll; 0 when the bet can never win."""

    if direction == "under":
        chance = target
    else:
        chance = 100.0 - target
    if chance <= 0:
        return 0.0
    return (100.0 / chance) * RETURN_TO_PLAYER


def draw_dice(rng) -> float:
    return rng.random() * 100.0


def resolve_dice(bet: int, target: float, direction: str, roll: float) -> DiceOutcome:
    won = roll < target if direction == "under" else roll > target
    multiplier = dice_multiplier(target, direction) if won else 0.0
    return DiceOutcome(
        roll=roll,
        target=target,
        direction=direction,
        won=won,
        multiplier=multiplier,
        payout=payout_for(bet, multiplier) if won else 0,
    )


# ---------------------------------------------------------------------------
# Limbo
# ---------------------------------------------------------------------------


def validate_limbo(target: float) -> None:
    if not LIMBO_MIN_TARGET <= target <= LIMBO_MAX_TARGET:
        raise ValidationError("Target multiplier must be between 1.01 and 1000")


def draw_limbo(rng) -> float:
    return rng.random() * 100.0


def limbo_crash_point(draw: float) -> float:
    if draw <= 0:
        return 1.0
    return max(1.0, round(99.0 / draw, 2))


def resolve_limbo(bet: int, target: float, draw: float) -> LimboOutcome:
    crash_point = limbo_crash_point(draw)
    won = crash_point >= target
    return LimboOutcome(
        crash_point=crash_point,
        target=target,
        won=won,
        payout=payout_for(bet, target) if won else 0,
    )


# ---------------------------------------------------------------------------
# Keno
# ---------------------------------------------------------------------------


def validate_keno(picks: Sequence[int], risk: str, risks: Iterable[str]) -> None:
    if risk not in tuple(risks):
        raise ValidationError(f"Unknown risk level {risk!r}")
    if not 1 <= len(picks) <= KENO_MAX_PICKS:
        raise ValidationError(f"Select between 1 and {KENO_MAX_PICKS} numbers")
    if len(set(picks)) != len(picks):
        raise ValidationError("Selected numbers must be distinct")
    if any(not 1 <= n <= KENO_POOL for n in picks):
        raise ValidationError(f"Numbers must be between 1 and {KENO_POOL}")


def draw_keno(rng) -> List[int]:
    return rng.sample(range(1, KENO_POOL + 1), KENO_DRAWS)


def resolve_keno(bet: int, picks: Sequence[int], drawn: Sequence[int], risk: str, paytable) -> KenoOutcome:
    drawn_set = set(drawn)
    hits = sum(1 for n in picks if n in drawn_set)
    multiplier = paytable.multiplier(risk, len(picks), hits)
    return KenoOutcome(
        bet=bet,
        picks=list(picks),
        drawn=list(drawn),
        hits=hits,
        risk=risk,
        multiplier=multiplier,
        payout=payout_for(bet, multiplier),
    )


# ---------------------------------------------------------------------------
# Mines
# ---------------------------------------------------------------------------


def validate_mine_count(mine_count: int) -> None:
    if not MIN_MINES <= mine_count <= MAX_MINES:
        raise ValidationError(f"Mine count must be between {MIN_MINES} and {MAX_MINES}")


def mines_multiplier(reveals: int, mine_count: int) -> float:
    """
    Fair-odds multiplier after `reveals` safe tiles, less the house edge.

    Each safe reveal removes one tile from both the board and the safe pool,
    so the survival odds compound as (25 - i) / (25 - m - i).
    """

    if reveals <= 0:
        return 0.0
    safe = BOARD_SIZE - mine_count
    if reveals > safe:
        return 0.0
    numerator = 1
    denominator = 1
    for i in range(reveals):
        numerator *= BOARD_SIZE - i
        denominator *= safe - i
    return RETURN_TO_PLAYER * numerator / denominator
