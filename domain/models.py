from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .errors import CorruptedState
from .payouts import BOARD_SIZE, MAX_MINES, MIN_MINES, mines_multiplier


GAME_DICE = "dice"
GAME_LIMBO = "limbo"
GAME_KENO = "keno"
GAME_MINES = "mines"
GAME_BLACKJACK = "blackjack"

RESULT_WIN = "win"
RESULT_LOSS = "loss"
RESULT_PUSH = "push"
RESULT_BLACKJACK = "blackjack"
RESULT_REFUND = "refund"

WAGER_OPEN = "open"
WAGER_SETTLED = "settled"
WAGER_REFUNDED = "refunded"

STATUS_PLAYING = "playing"
STATUS_DEALER_TURN = "dealer_turn"
STATUS_FINISHED = "finished"

SUITS = ("hearts", "diamonds", "clubs", "spades")
RANKS = ("A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class User:
    """
    A player on the rewards platform.

    `balance` is owned by the ledger; nothing else should write it.
    """

    id: str
    display_name: str
    balance: int = 0


@dataclass(frozen=True)
class GameHistoryEntry:
    """One resolved wager. Append-only."""

    owner: str
    game: str
    bet: int
    payout: int
    result: str
    detail: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Wager:
    """
    Journal entry for a round that has been (or is about to be) debited.

    A wager stays `open` from just before the debit until the round is
    recorded. Open wagers that outlive their session are refunded by
    the reconciliation job.
    """

    id: str
    owner: str
    game: str
    stake: int
    status: str = WAGER_OPEN
    created_at: datetime = field(default_factory=utcnow)
    settled_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------


def card_value(rank: str) -> int:
    if rank == "A":
        return 11
    if rank in ("J", "Q", "K"):
        return 10
    return int(rank)


@dataclass(frozen=True)
class Card:
    suit: str
    rank: str

    @property
    def value(self) -> int:
        return card_value(self.rank)

    def to_dict(self) -> Dict[str, Any]:
        return {"suit": self.suit, "rank": self.rank, "value": self.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Card":
        suit = data["suit"]
        rank = data["rank"]
        if suit not in SUITS or rank not in RANKS:
            raise ValueError(f"unknown card {rank!r} of {suit!r}")
        return cls(suit=suit, rank=rank)


def hand_total(cards: List[Card]) -> int:
    """
    Blackjack value of a set of cards.

    Aces count 11 and are knocked down to 1, one at a time, while the
    total is over 21.
    """

    total = 0
    aces = 0
    for card in cards:
        if card.rank == "A":
            aces += 1
        total += card.value

    while total > 21 and aces:
        total -= 10
        aces -= 1

    return total


@dataclass
class Hand:
    cards: List[Card]
    bet: int
    doubled: bool = False

    @property
    def total(self) -> int:
        return hand_total(self.cards)

    @property
    def is_busted(self) -> bool:
        return self.total > 21

    @property
    def is_blackjack(self) -> bool:
        return len(self.cards) == 2 and self.total == 21

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cards": [c.to_dict() for c in self.cards],
            "bet": self.bet,
            "doubled": self.doubled,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Hand":
        return cls(
            cards=[Card.from_dict(c) for c in data["cards"]],
            bet=data["bet"],
            doubled=bool(data.get("doubled", False)),
        )


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class MinesGame:
    """Persisted state of one player's mines round."""

    owner: str
    wager_id: str
    bet: int
    mine_count: int
    mines: List[int]
    revealed: List[int] = field(default_factory=list)
    layout_key: str = ""
    layout_token: str = ""
    version: int = 0
    created_at: datetime = field(default_factory=utcnow)

    game = GAME_MINES

    @property
    def game_id(self) -> str:
        return self.wager_id

    @property
    def multiplier(self) -> float:
        return mines_multiplier(len(self.revealed), self.mine_count)

    @property
    def safe_tiles(self) -> int:
        return BOARD_SIZE - self.mine_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "wager_id": self.wager_id,
            "bet": self.bet,
            "mine_count": self.mine_count,
            "mines": list(self.mines),
            "revealed": list(self.revealed),
            "layout_key": self.layout_key,
            "layout_token": self.layout_token,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], version: int = 0) -> "MinesGame":
        try:
            game = cls(
                owner=str(data["owner"]),
                wager_id=str(data["wager_id"]),
                bet=data["bet"],
                mine_count=data["mine_count"],
                mines=list(data["mines"]),
                revealed=list(data["revealed"]),
                layout_key=str(data.get("layout_key", "")),
                layout_token=str(data.get("layout_token", "")),
                version=version,
                created_at=datetime.fromisoformat(data["created_at"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise CorruptedState(detail=f"mines session unreadable: {exc}") from exc

        problem = game._structural_problem()
        if problem:
            raise CorruptedState(detail=problem)
        return game

    def _structural_problem(self) -> Optional[str]:
        if not _is_int(self.bet) or self.bet <= 0:
            return "bet must be a positive integer"
        if not _is_int(self.mine_count) or not MIN_MINES <= self.mine_count <= MAX_MINES:
            return "mine count out of range"
        tiles = self.mines + self.revealed
        if not all(_is_int(t) and 0 <= t < BOARD_SIZE for t in tiles):
            return "tile index out of range"
        if len(set(self.mines)) != self.mine_count or len(self.mines) != self.mine_count:
            return "mine set does not match mine count"
        if len(set(self.revealed)) != len(self.revealed):
            return "revealed tiles repeat"
        if set(self.mines) & set(self.revealed):
            return "revealed tiles overlap mines"
        if len(self.revealed) >= self.safe_tiles:
            return "every safe tile already revealed"
        return None


@dataclass
class BlackjackGame:
    """Persisted state of one player's blackjack round."""

    owner: str
    wager_id: str
    bet: int
    deck: List[Card]
    hands: List[Hand]
    dealer: List[Card]
    current_hand: int = 0
    can_double: bool = True
    can_split: bool = False
    has_split: bool = False
    status: str = STATUS_PLAYING
    version: int = 0
    created_at: datetime = field(default_factory=utcnow)

    game = GAME_BLACKJACK

    @property
    def game_id(self) -> str:
        return self.wager_id

    @property
    def hand(self) -> Hand:
        return self.hands[self.current_hand]

    @property
    def dealer_total(self) -> int:
        return hand_total(self.dealer)

    @property
    def total_staked(self) -> int:
        return sum(h.bet for h in self.hands)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "wager_id": self.wager_id,
            "bet": self.bet,
            "deck": [c.to_dict() for c in self.deck],
            "hands": [h.to_dict() for h in self.hands],
            "dealer": [c.to_dict() for c in self.dealer],
            "current_hand": self.current_hand,
            "can_double": self.can_double,
            "can_split": self.can_split,
            "has_split": self.has_split,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], version: int = 0) -> "BlackjackGame":
        try:
            game = cls(
                owner=str(data["owner"]),
                wager_id=str(data["wager_id"]),
                bet=data["bet"],
                deck=[Card.from_dict(c) for c in data["deck"]],
                hands=[Hand.from_dict(h) for h in data["hands"]],
                dealer=[Card.from_dict(c) for c in data["dealer"]],
                current_hand=data["current_hand"],
                can_double=bool(data["can_double"]),
                can_split=bool(data["can_split"]),
                has_split=bool(data["has_split"]),
                status=data["status"],
                version=version,
                created_at=datetime.fromisoformat(data["created_at"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise CorruptedState(detail=f"blackjack session unreadable: {exc}") from exc

        problem = game._structural_problem()
        if problem:
            raise CorruptedState(detail=problem)
        return game

    def _structural_problem(self) -> Optional[str]:
        if not _is_int(self.bet) or self.bet <= 0:
            return "bet must be a positive integer"
        if self.status not in (STATUS_PLAYING, STATUS_DEALER_TURN):
            return f"unexpected status {self.status!r}"
        if len(self.hands) != (2 if self.has_split else 1):
            return "hand count does not match split flag"
        if not _is_int(self.current_hand) or not 0 <= self.current_hand < len(self.hands):
            return "current hand out of range"
        if any(len(h.cards) < 2 or not _is_int(h.bet) or h.bet <= 0 for h in self.hands):
            return "player hand malformed"
        if len(self.dealer) < 2:
            return "dealer hand malformed"
        cards = list(self.deck) + list(self.dealer)
        for h in self.hands:
            cards.extend(h.cards)
        if len(cards) != len(SUITS) * len(RANKS) or len(set(cards)) != len(cards):
            return "cards do not form a single deck"
        return None
