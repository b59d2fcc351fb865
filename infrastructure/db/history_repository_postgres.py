from __future__ import annotations

from typing import List

import psycopg2
from psycopg2.extras import Json

from domain.models import GameHistoryEntry
from domain.repositories import HistoryRepository


class PostgresHistoryRepository(HistoryRepository):
    """Postgres-backed implementation of `HistoryRepository`."""

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
                    CREATE TABLE IF NOT EXISTS game_history (
                        id BIGSERIAL PRIMARY KEY,
                        owner TEXT NOT NULL,
                        game TEXT NOT NULL,
                        bet BIGINT NOT NULL,
                        payout BIGINT NOT NULL,
                        result TEXT NOT NULL,
                        detail JSONB NOT NULL,
                        created_at TIMESTAMPTZ NOT NULL
                    )
                    """
                )
                cur.execute(
                    "CREATE INDEX IF NOT EXISTS idx_game_history_owner ON game_history (owner, id)"
                )
                conn.commit()

    @staticmethod
    def _to_domain(row) -> GameHistoryEntry:
        return GameHistoryEntry(
            owner=row[0],
            game=row[1],
            bet=int(row[2]),
            payout=int(row[3]),
            result=row[4],
            detail=row[5],
            created_at=row[6],
        )

    def record(self, entry: GameHistoryEntry) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO game_history (owner, game, bet, payout, result, detail, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        entry.owner,
                        entry.game,
                        entry.bet,
                        entry.payout,
                        entry.result,
                        Json(entry.detail),
                        entry.created_at,
                    ),
                )
                conn.commit()

    def list_for_user(self, owner: str, limit: int = 50) -> List[GameHistoryEntry]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT owner, game, bet, payout, result, detail, created_at
                    FROM game_history
                    WHERE owner = %s
                    ORDER BY id DESC
                    LIMIT %s
                    """,
                    (owner, limit),
                )
                return [self._to_domain(row) for row in cur.fetchall()]
