from __future__ import annotations

from datetime import datetime
from typing import List, Optional

import psycopg2

from domain.models import WAGER_OPEN, Wager
from domain.repositories import WagerJournal

_COLUMNS = "id, owner, game, stake, status, created_at, settled_at"


class PostgresWagerJournal(WagerJournal):
    """Postgres-backed implementation of `WagerJournal`."""

    def __init__(self, db_params: dict) -> None:
        self._db_params = db_params
        self._ensure_table()

    def _get_connection(self):
        return psycopg2.connect(**self._db_params)

    def _ensure_table(self) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS wagers (
                        id TEXT PRIMARY KEY,
                        owner TEXT NOT NULL,
                        game TEXT NOT NULL,
                        stake BIGINT NOT NULL,
                        status TEXT NOT NULL,
                        created_at TIMESTAMPTZ NOT NULL,
                        settled_at TIMESTAMPTZ
                    )
                    """
                )
                cur.execute(
                    "CREATE INDEX IF NOT EXISTS idx_wagers_open ON wagers (status, created_at)"
                )
                conn.commit()

    @staticmethod
    def _to_domain(row) -> Wager:
        return Wager(
            id=row[0],
            owner=row[1],
            game=row[2],
            stake=int(row[3]),
            status=row[4],
            created_at=row[5],
            settled_at=row[6],
        )

    def open(self, wager: Wager) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO wagers (id, owner, game, stake, status, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    """,
                    (wager.id, wager.owner, wager.game, wager.stake, WAGER_OPEN, wager.created_at),
                )
                conn.commit()

    def get(self, wager_id: str) -> Optional[Wager]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT {_COLUMNS} FROM wagers WHERE id = %s", (wager_id,))
                row = cur.fetchone()
                if not row:
                    return None
                return self._to_domain(row)

    def add_stake(self, wager_id: str, amount: int) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "UPDATE wagers SET stake = stake + %s WHERE id = %s AND status = %s",
                    (amount, wager_id, WAGER_OPEN),
                )
                conn.commit()

    def close(self, wager_id: str, status: str) -> bool:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE wagers SET status = %s, settled_at = now()
                    WHERE id = %s AND status = %s
                    """,
                    (status, wager_id, WAGER_OPEN),
                )
                closed = cur.rowcount == 1
                conn.commit()
                return closed

    def discard(self, wager_id: str) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM wagers WHERE id = %s AND status = %s",
                    (wager_id, WAGER_OPEN),
                )
                conn.commit()

    def list_open(self, older_than: datetime) -> List[Wager]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS} FROM wagers
                    WHERE status = %s AND created_at < %s
                    ORDER BY created_at
                    """,
                    (WAGER_OPEN, older_than),
                )
                return [self._to_domain(row) for row in cur.fetchall()]
