from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from domain.models import WAGER_OPEN, Wager, utcnow
from domain.repositories import WagerJournal


def _timestamp(value: datetime) -> str:
    # Fixed-width UTC text so string comparison matches time order.
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class SqliteWagerJournal(WagerJournal):
    """
    SQLite-backed implementation of `WagerJournal`.

    Every state change is conditioned on `status = 'open'`, so closing,
    discarding and topping up a wager can each only happen once.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._ensure_table()

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _ensure_table(self) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS wagers (
                    id TEXT PRIMARY KEY,
                    owner TEXT NOT NULL,
                    game TEXT NOT NULL,
                    stake INTEGER NOT NULL,
                    status TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    settled_at TEXT
                )
                """
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_wagers_open ON wagers (status, created_at)"
            )
            conn.commit()

    @staticmethod
    def _to_domain(row: sqlite3.Row) -> Wager:
        return Wager(
            id=row[0],
            owner=row[1],
            game=row[2],
            stake=int(row[3]),
            status=row[4],
            created_at=datetime.fromisoformat(row[5]),
            settled_at=datetime.fromisoformat(row[6]) if row[6] else None,
        )

    def open(self, wager: Wager) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO wagers (id, owner, game, stake, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (wager.id, wager.owner, wager.game, wager.stake, WAGER_OPEN, _timestamp(wager.created_at)),
            )
            conn.commit()

    def get(self, wager_id: str) -> Optional[Wager]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT id, owner, game, stake, status, created_at, settled_at
                FROM wagers WHERE id = ?
                """,
                (wager_id,),
            )
            row = cur.fetchone()
            if not row:
                return None
            return self._to_domain(row)

    def add_stake(self, wager_id: str, amount: int) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "UPDATE wagers SET stake = stake + ? WHERE id = ? AND status = ?",
                (amount, wager_id, WAGER_OPEN),
            )
            conn.commit()

    def close(self, wager_id: str, status: str) -> bool:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                UPDATE wagers SET status = ?, settled_at = ?
                WHERE id = ? AND status = ?
                """,
                (status, _timestamp(utcnow()), wager_id, WAGER_OPEN),
            )
            conn.commit()
            return cur.rowcount == 1

    def discard(self, wager_id: str) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "DELETE FROM wagers WHERE id = ? AND status = ?",
                (wager_id, WAGER_OPEN),
            )
            conn.commit()

    def list_open(self, older_than: datetime) -> List[Wager]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT id, owner, game, stake, status, created_at, settled_at
                FROM wagers
                WHERE status = ? AND created_at < ?
                ORDER BY created_at
                """,
                (WAGER_OPEN, _timestamp(older_than)),
            )
            return [self._to_domain(row) for row in cur.fetchall()]
