from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from domain.errors import CorruptedState
from domain.models import RESULT_REFUND, WAGER_REFUNDED, GameHistoryEntry, Wager, utcnow
from domain.repositories import HistoryRepository, SessionRepository, WagerJournal

from .ledger import LedgerService

logger = logging.getLogger(__name__)

DEFAULT_GRACE = timedelta(minutes=10)


@dataclass
class ReconcileReport:
    refunded: List[Wager] = field(default_factory=list)
    resumable: List[Wager] = field(default_factory=list)
    failed: List[Wager] = field(default_factory=list)

    @property
    def total_refunded(self) -> int:
        return sum(w.stake for w in self.refunded)


class Reconciler:
    """
    Refunds wagers that were debited but never settled.

    A wager still backed by a live session is left alone: the player can
    finish that round. Everything else older than the grace period gets its
    stake back and a "refund" history entry.
    """

    def __init__(
        self,
        ledger: LedgerService,
        journal: WagerJournal,
        sessions: SessionRepository,
        history: HistoryRepository,
        grace: timedelta = DEFAULT_GRACE,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._ledger = ledger
        self._journal = journal
        self._sessions = sessions
        self._history = history
        self._grace = grace
        self._clock = clock or utcnow

    def _is_resumable(self, wager: Wager) -> bool:
        try:
            session = self._sessions.get(wager.owner, wager.game)
        except CorruptedState:
            # Already discarded by the store; nothing left to resume.
            return False
        return session is not None and session.wager_id == wager.id

    def _refund(self, wager: Wager) -> bool:
        # Closing first means a concurrent settle or second reconciler loses.
        if not self._journal.close(wager.id, WAGER_REFUNDED):
            return False
        self._ledger.credit(wager.owner, wager.stake)
        self._history.record(
            GameHistoryEntry(
                owner=wager.owner,
                game=wager.game,
                bet=wager.stake,
                payout=wager.stake,
                result=RESULT_REFUND,
                detail={"wagerId": wager.id, "reason": "unsettled"},
            )
        )
        return True

    def run(self) -> ReconcileReport:
        report = ReconcileReport()
        cutoff = self._clock() - self._grace

        for wager in self._journal.list_open(cutoff):
            try:
                if self._is_resumable(wager):
                    report.resumable.append(wager)
                    continue
                if self._refund(wager):
                    report.refunded.append(wager)
                    logger.warning(
                        "Refunded unsettled %s wager %s: %s points to user %s",
                        wager.game,
                        wager.id,
                        wager.stake,
                        wager.owner,
                    )
            except Exception:
                logger.exception("Could not reconcile wager %s", wager.id)
                report.failed.append(wager)

        logger.info(
            "Reconciliation done: %d refunded, %d resumable, %d failed",
            len(report.refunded),
            len(report.resumable),
            len(report.failed),
        )
        return report
