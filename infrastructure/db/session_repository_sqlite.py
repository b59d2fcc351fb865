from __future__ import annotations

import sqlite3
from typing import Optional

from domain.errors import CorruptedState, SessionConflict, SessionNotFound
from domain.repositories import GameSession, SessionRepository

from .session_state import decode_session, encode_session, log_discarded


class SqliteSessionRepository(SessionRepository):
    """
    SQLite-backed implementation of `SessionRepository`.

    One row per (owner, game) in `game_sessions`. The primary key makes
    `create` a create-if-absent, and the `version` column turns `save` and
    `delete` into compare-and-set operations.
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
                CREATE TABLE IF NOT EXISTS game_sessions (
                    owner TEXT NOT NULL,
                    game TEXT NOT NULL,
                    state TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 1,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (owner, game)
                )
                """
            )
            conn.commit()

    def create(self, session: GameSession) -> bool:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT OR IGNORE INTO game_sessions (owner, game, state, version)
                VALUES (?, ?, ?, 1)
                """,
                (session.owner, session.game, encode_session(session)),
            )
            conn.commit()
            created = cur.rowcount == 1
        if created:
            session.version = 1
        return created

    def get(self, owner: str, game: str) -> Optional[GameSession]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT state, version FROM game_sessions WHERE owner = ? AND game = ?",
                (owner, game),
            )
            row = cur.fetchone()
        if not row:
            return None

        try:
            return decode_session(owner, game, row[0], int(row[1]))
        except CorruptedState as exc:
            self.delete(owner, game, version=int(row[1]))
            log_discarded(owner, game, exc)
            raise

    def save(self, session: GameSession) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                UPDATE game_sessions
                SET state = ?, version = version + 1, updated_at = CURRENT_TIMESTAMP
                WHERE owner = ? AND game = ? AND version = ?
                """,
                (encode_session(session), session.owner, session.game, session.version),
            )
            conn.commit()
            updated = cur.rowcount == 1

        if updated:
            session.version += 1
            return
        if self._exists(session.owner, session.game):
            raise SessionConflict("This game changed while your action was processed. Please retry.")
        raise SessionNotFound()

    def delete(self, owner: str, game: str, version: Optional[int] = None) -> bool:
        query = "DELETE FROM game_sessions WHERE owner = ? AND game = ?"
        params = [owner, game]
        if version is not None:
            query += " AND version = ?"
            params.append(version)

        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(query, params)
            conn.commit()
            return cur.rowcount == 1

    def _exists(self, owner: str, game: str) -> bool:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT 1 FROM game_sessions WHERE owner = ? AND game = ?",
                (owner, game),
            )
            return cur.fetchone() is not None
