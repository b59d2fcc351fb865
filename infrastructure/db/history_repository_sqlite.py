from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from typing import List

from domain.models import GameHistoryEntry
from domain.repositories import HistoryRepository


class SqliteHistoryRepository(HistoryRepository):
    """
    SQLite-backed implementation of `HistoryRepository`.

    Rows are only ever inserted; `detail` is stored as a JSON document.
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
                CREATE TABLE IF NOT EXISTS game_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner TEXT NOT NULL,
                    game TEXT NOT NULL,
                    bet INTEGER NOT NULL,
                    payout INTEGER NOT NULL,
                    result TEXT NOT NULL,
                    detail TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_game_history_owner ON game_history (owner, id)"
            )
            conn.commit()

    @staticmethod
    def _to_domain(row: sqlite3.Row) -> GameHistoryEntry:
        return GameHistoryEntry(
            owner=row[0],
            game=row[1],
            bet=int(row[2]),
            payout=int(row[3]),
            result=row[4],
            detail=json.loads(row[5]),
            created_at=datetime.fromisoformat(row[6]),
        )

    def record(self, entry: GameHistoryEntry) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO game_history (owner, game, bet, payout, result, detail, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.owner,
                    entry.game,
                    entry.bet,
                    entry.payout,
                    entry.result,
                    json.dumps(entry.detail),
                    entry.created_at.isoformat(),
                ),
            )
            conn.commit()

    def list_for_user(self, owner: str, limit: int = 50) -> List[GameHistoryEntry]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT owner, game, bet, payout, result, detail, created_at
                FROM game_history
                WHERE owner = ?
                ORDER BY id DESC
                LIMIT ?
                """,
                (owner, limit),
            )
            return [self._to_domain(row) for row in cur.fetchall()]
