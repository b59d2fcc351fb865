from __future__ import annotations

import logging
import random
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence

from application.ledger import LedgerService
from domain import blackjack, mines, payouts
from domain.blackjack import HandResult
from domain.errors import (
    CorruptedState,
    SessionConflict,
    SessionNotFound,
    SettlementFault,
    ValidationError,
    WagerError,
)
from domain.mines import RevealOutcome
from domain.models import (
    GAME_BLACKJACK,
    GAME_DICE,
    GAME_KENO,
    GAME_LIMBO,
    GAME_MINES,
    RESULT_LOSS,
    RESULT_WIN,
    STATUS_DEALER_TURN,
    WAGER_SETTLED,
    BlackjackGame,
    GameHistoryEntry,
    MinesGame,
    Wager,
)
from domain.payouts import DiceOutcome, KenoOutcome, LimboOutcome
from domain.paytables import KenoPaytable, load_keno_paytable
from domain.repositories import GameSession, HistoryRepository, SessionRepository, WagerJournal

logger = logging.getLogger(__name__)


@dataclass
class DiceResult:
    outcome: DiceOutcome
    balance: int


@dataclass
class LimboResult:
    outcome: LimboOutcome
    balance: int


@dataclass
class KenoResult:
    outcome: KenoOutcome
    balance: int


@dataclass
class MinesStep:
    """
    Result of a mines operation.

    `outcome` is None for a fresh start. `balance` is set whenever the
    ledger was touched (start and every terminal step).
    """

    game: MinesGame
    outcome: Optional[RevealOutcome] = None
    balance: Optional[int] = None

    @property
    def finished(self) -> bool:
        return self.outcome is not None and self.outcome.finished


@dataclass
class BlackjackStep:
    game: BlackjackGame
    results: List[HandResult] = field(default_factory=list)
    total_payout: int = 0
    balance: Optional[int] = None

    @property
    def finished(self) -> bool:
        return bool(self.results)


def _validate_bet(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("Bet must be a whole number of points.")
    if amount <= 0:
        raise ValidationError("Bet must be greater than zero.")


def _new_wager_id() -> str:
    return uuid.uuid4().hex


class GameService:
    """
    Transport-agnostic wager engine.

    Every round follows the same discipline: validate, open a journal entry,
    debit the stake, resolve, credit the payout and close the journal entry,
    then record history. Anything that fails after the debit is logged as
    critical and raised as `SettlementFault`; a journal entry still open at
    that point lets the reconciliation job refund it later.
    """

    def __init__(
        self,
        ledger: LedgerService,
        sessions: SessionRepository,
        history: HistoryRepository,
        journal: WagerJournal,
        paytable: Optional[KenoPaytable] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._ledger = ledger
        self._sessions = sessions
        self._history = history
        self._journal = journal
        self._paytable = paytable or load_keno_paytable()
        self._rng = rng or random.SystemRandom()

    @property
    def keno_risks(self) -> Sequence[str]:
        return self._paytable.risks

    # ------------------------------------------------------------------
    # Round plumbing
    # ------------------------------------------------------------------

    def _open_round(self, owner: str, game: str, bet: int) -> tuple[Wager, int]:
        wager = Wager(id=_new_wager_id(), owner=owner, game=game, stake=bet)
        self._journal.open(wager)
        try:
            balance = self._ledger.debit(owner, bet)
        except Exception:
            self._journal.discard(wager.id)
            raise
        return wager, balance

    @contextmanager
    def _settling(self, wager_id: str, owner: str, game: str) -> Iterator[None]:
        try:
            yield
        except Exception as exc:
            logger.critical(
                "Wager %s (%s, user %s) was debited but could not be settled",
                wager_id,
                game,
                owner,
                exc_info=True,
            )
            raise SettlementFault(wager_id) from exc

    def _finish(
        self,
        wager_id: str,
        owner: str,
        game: str,
        stake: int,
        payout: int,
        result: str,
        detail: Dict[str, Any],
    ) -> int:
        balance = self._ledger.credit(owner, payout)
        # Closed before the history write: a paid wager is never refunded.
        self._journal.close(wager_id, WAGER_SETTLED)
        self._history.record(
            GameHistoryEntry(
                owner=owner,
                game=game,
                bet=stake,
                payout=payout,
                result=result,
                detail=detail,
            )
        )
        logger.info("%s: user %s staked %s, paid %s (%s)", game, owner, stake, payout, result)
        return balance

    def _abandon_round(self, wager: Wager) -> None:
        """Refund a round whose session could not be created."""

        with self._settling(wager.id, wager.owner, wager.game):
            self._ledger.credit(wager.owner, wager.stake)
            self._journal.discard(wager.id)

    def _undo_stake(self, session: GameSession, amount: int) -> None:
        """Refund extra stake for a double/split that could not be stored."""

        with self._settling(session.wager_id, session.owner, session.game):
            self._ledger.credit(session.owner, amount)
            self._journal.add_stake(session.wager_id, -amount)

    def _raise_stake(self, session: GameSession, amount: int) -> int:
        self._journal.add_stake(session.wager_id, amount)
        try:
            return self._ledger.debit(session.owner, amount)
        except Exception:
            self._journal.add_stake(session.wager_id, -amount)
            raise

    # ------------------------------------------------------------------
    # Session plumbing
    # ------------------------------------------------------------------

    def _ensure_no_session(self, owner: str, game: str) -> None:
        # Fast path only; `_create_session` is what enforces the invariant.
        try:
            existing = self._sessions.get(owner, game)
        except CorruptedState:
            existing = None
        if existing is not None:
            raise SessionConflict("You already have an active game. Please finish it first.")

    def _create_session(self, session: GameSession, wager: Wager) -> None:
        try:
            created = self._sessions.create(session)
        except Exception:
            self._abandon_round(wager)
            raise
        if not created:
            self._abandon_round(wager)
            raise SessionConflict("You already have an active game. Please finish it first.")

    def _load(self, owner: str, game: str) -> GameSession:
        session = self._sessions.get(owner, game)
        if session is None:
            raise SessionNotFound()
        return session

    def _claim(self, session: GameSession) -> None:
        """Take exclusive ownership of a session that is about to settle."""

        if self._sessions.delete(session.owner, session.game, version=session.version):
            return
        if self._sessions.get(session.owner, session.game) is not None:
            raise SessionConflict("This game changed while your action was processed. Please retry.")
        raise SessionNotFound()

    # ------------------------------------------------------------------
    # Single-round games
    # ------------------------------------------------------------------

    def play_dice(self, owner: str, bet: int, target: float, direction: str) -> DiceResult:
        _validate_bet(bet)
        payouts.validate_dice(target, direction)

        wager, _ = self._open_round(owner, GAME_DICE, bet)
        with self._settling(wager.id, owner, GAME_DICE):
            outcome = payouts.resolve_dice(bet, target, direction, payouts.draw_dice(self._rng))
            balance = self._finish(
                wager.id,
                owner,
                GAME_DICE,
                bet,
                outcome.payout,
                RESULT_WIN if outcome.won else RESULT_LOSS,
                {
                    "roll": outcome.roll,
                    "targetNumber": target,
                    "direction": direction,
                    "multiplier": outcome.multiplier,
                },
            )
        return DiceResult(outcome=outcome, balance=balance)

    def play_limbo(self, owner: str, bet: int, target: float) -> LimboResult:
        _validate_bet(bet)
        payouts.validate_limbo(target)

        wager, _ = self._open_round(owner, GAME_LIMBO, bet)
        with self._settling(wager.id, owner, GAME_LIMBO):
            outcome = payouts.resolve_limbo(bet, target, payouts.draw_limbo(self._rng))
            balance = self._finish(
                wager.id,
                owner,
                GAME_LIMBO,
                bet,
                outcome.payout,
                RESULT_WIN if outcome.won else RESULT_LOSS,
                {"crashPoint": outcome.crash_point, "targetMultiplier": target},
            )
        return LimboResult(outcome=outcome, balance=balance)

    def play_keno(self, owner: str, bet: int, picks: Sequence[int], risk: str) -> KenoResult:
        _validate_bet(bet)
        payouts.validate_keno(picks, risk, self._paytable.risks)

        wager, _ = self._open_round(owner, GAME_KENO, bet)
        with self._settling(wager.id, owner, GAME_KENO):
            drawn = payouts.draw_keno(self._rng)
            outcome = payouts.resolve_keno(bet, picks, drawn, risk, self._paytable)
            balance = self._finish(
                wager.id,
                owner,
                GAME_KENO,
                bet,
                outcome.payout,
                RESULT_WIN if outcome.won else RESULT_LOSS,
                {
                    "selectedNumbers": outcome.picks,
                    "drawnNumbers": outcome.drawn,
                    "hits": outcome.hits,
                    "risk": risk,
                    "multiplier": outcome.multiplier,
                },
            )
        return KenoResult(outcome=outcome, balance=balance)

    # ------------------------------------------------------------------
    # Mines
    # ------------------------------------------------------------------

    def active_mines(self, owner: str) -> Optional[MinesGame]:
        return self._sessions.get(owner, GAME_MINES)

    def start_mines(self, owner: str, bet: int, mine_count: int) -> MinesStep:
        _validate_bet(bet)
        payouts.validate_mine_count(mine_count)
        self._ensure_no_session(owner, GAME_MINES)

        wager, balance = self._open_round(owner, GAME_MINES, bet)
        game = mines.new_game(owner, wager.id, bet, mine_count, self._rng)
        self._create_session(game, wager)
        return MinesStep(game=game, balance=balance)

    def reveal_mine(self, owner: str, position: int) -> MinesStep:
        mines.validate_position(position)
        game = self._load(owner, GAME_MINES)
        outcome = mines.reveal(game, position)

        if not outcome.finished:
            self._sessions.save(game)
            return MinesStep(game=game, outcome=outcome)

        self._claim(game)
        return self._settle_mines(game, outcome, auto_cashout=not outcome.hit_mine)

    def cashout_mines(self, owner: str) -> MinesStep:
        game = self._load(owner, GAME_MINES)
        outcome = mines.cashout(game)
        self._claim(game)
        return self._settle_mines(game, outcome, auto_cashout=False)

    def _settle_mines(self, game: MinesGame, outcome: RevealOutcome, auto_cashout: bool) -> MinesStep:
        detail: Dict[str, Any] = {
            "minesCount": game.mine_count,
            "revealedTiles": len(game.revealed),
            "multiplier": outcome.multiplier,
        }
        if outcome.hit_mine:
            detail.update(hitMine=True, minePosition=outcome.position)
        elif auto_cashout:
            detail["autoCashout"] = True
        else:
            detail["cashout"] = True

        with self._settling(game.wager_id, game.owner, GAME_MINES):
            balance = self._finish(
                game.wager_id,
                game.owner,
                GAME_MINES,
                game.bet,
                outcome.payout,
                RESULT_LOSS if outcome.hit_mine else RESULT_WIN,
                detail,
            )
        return MinesStep(game=game, outcome=outcome, balance=balance)

    # ------------------------------------------------------------------
    # Blackjack
    # ------------------------------------------------------------------

    def active_blackjack(self, owner: str) -> Optional[BlackjackGame]:
        return self._sessions.get(owner, GAME_BLACKJACK)

    def start_blackjack(self, owner: str, bet: int) -> BlackjackStep:
        _validate_bet(bet)
        self._ensure_no_session(owner, GAME_BLACKJACK)

        wager, balance = self._open_round(owner, GAME_BLACKJACK, bet)
        game = blackjack.deal(owner, wager.id, bet, self._rng)
        self._create_session(game, wager)

        if game.status == STATUS_DEALER_TURN:
            # Natural on the deal: straight to the dealer. A failed claim leaves
            # the session in place and `blackjack_stand` settles it.
            with self._settling(game.wager_id, owner, GAME_BLACKJACK):
                self._claim(game)
            return self._settle_blackjack(game)
        return BlackjackStep(game=game, balance=balance)

    def blackjack_hit(self, owner: str) -> BlackjackStep:
        game = self._load(owner, GAME_BLACKJACK)
        blackjack.hit(game)
        return self._advance_blackjack(game)

    def blackjack_stand(self, owner: str) -> BlackjackStep:
        game = self._load(owner, GAME_BLACKJACK)
        if game.status != STATUS_DEALER_TURN:
            blackjack.stand(game)
        return self._advance_blackjack(game)

    def blackjack_double(self, owner: str) -> BlackjackStep:
        game = self._load(owner, GAME_BLACKJACK)
        extra = blackjack.ensure_can_double(game)
        balance = self._raise_stake(game, extra)
        blackjack.double(game)
        return self._advance_blackjack(game, extra_stake=extra, balance=balance)

    def blackjack_split(self, owner: str) -> BlackjackStep:
        game = self._load(owner, GAME_BLACKJACK)
        extra = blackjack.ensure_can_split(game)
        balance = self._raise_stake(game, extra)
        blackjack.split(game)
        return self._advance_blackjack(game, extra_stake=extra, balance=balance)

    def _advance_blackjack(
        self,
        game: BlackjackGame,
        extra_stake: int = 0,
        balance: Optional[int] = None,
    ) -> BlackjackStep:
        try:
            if game.status == STATUS_DEALER_TURN:
                self._claim(game)
            else:
                self._sessions.save(game)
        except Exception as exc:
            if not isinstance(exc, WagerError):
                logger.error(
                    "Could not store blackjack wager %s for user %s",
                    game.wager_id,
                    game.owner,
                    exc_info=True,
                )
            if extra_stake:
                self._undo_stake(game, extra_stake)
            raise

        if game.status == STATUS_DEALER_TURN:
            return self._settle_blackjack(game)
        return BlackjackStep(game=game, balance=balance)

    def _settle_blackjack(self, game: BlackjackGame) -> BlackjackStep:
        with self._settling(game.wager_id, game.owner, GAME_BLACKJACK):
            results = blackjack.settle(game)
            total_payout = sum(r.payout for r in results)
            staked = game.total_staked
            balance = self._finish(
                game.wager_id,
                game.owner,
                GAME_BLACKJACK,
                staked,
                total_payout,
                blackjack.round_result(staked, total_payout),
                {
                    "playerHands": [
                        {
                            "cards": [c.to_dict() for c in r.cards],
                            "total": r.total,
                            "bet": r.bet,
                            "result": r.result,
                            "payout": r.payout,
                        }
                        for r in results
                    ],
                    "dealerHand": [c.to_dict() for c in game.dealer],
                    "dealerTotal": game.dealer_total,
                    "hasSplit": game.has_split,
                },
            )
        return BlackjackStep(game=game, results=results, total_payout=total_payout, balance=balance)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def history(self, owner: str, limit: int = 50) -> List[GameHistoryEntry]:
        return self._history.list_for_user(owner, limit)
