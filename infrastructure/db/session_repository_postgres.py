from __future__ import annotations

from typing import Optional

import psycopg2

from domain.errors import CorruptedState, SessionConflict, SessionNotFound
from domain.repositories import GameSession, SessionRepository

from .session_state import decode_session, encode_session, log_discarded


class PostgresSessionRepository(SessionRepository):
    """
    Postgres-backed implementation of `SessionRepository`.

    Same contract as the SQLite store: `ON CONFLICT DO NOTHING` for
    create-if-absent and a `version` column for optimistic saves. State is
    kept as JSONB, which psycopg2 hands back already decoded.
    """

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
                    CREATE TABLE IF NOT EXISTS game_sessions (
                        owner TEXT NOT NULL,
                        game TEXT NOT NULL,
                        state JSONB NOT NULL,
                        version INTEGER NOT NULL DEFAULT 1,
                        updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                        PRIMARY KEY (owner, game)
                    )
                    """
                )
                conn.commit()

    def create(self, session: GameSession) -> bool:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO game_sessions (owner, game, state, version)
                    VALUES (%s, %s, %s::jsonb, 1)
                    ON CONFLICT (owner, game) DO NOTHING
                    """,
                    (session.owner, session.game, encode_session(session)),
                )
                created = cur.rowcount == 1
                conn.commit()
        if created:
            session.version = 1
        return created

    def get(self, owner: str, game: str) -> Optional[GameSession]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT state, version FROM game_sessions WHERE owner = %s AND game = %s",
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
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE game_sessions
                    SET state = %s::jsonb, version = version + 1, updated_at = now()
                    WHERE owner = %s AND game = %s AND version = %s
                    RETURNING version
                    """,
                    (encode_session(session), session.owner, session.game, session.version),
                )
                row = cur.fetchone()
                conn.commit()

        if row:
            session.version = int(row[0])
            return
        if self._exists(session.owner, session.game):
            raise SessionConflict("This game changed while your action was processed. Please retry.")
        raise SessionNotFound()

    def delete(self, owner: str, game: str, version: Optional[int] = None) -> bool:
        query = "DELETE FROM game_sessions WHERE owner = %s AND game = %s"
        params = [owner, game]
        if version is not None:
            query += " AND version = %s"
            params.append(version)

        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                deleted = cur.rowcount == 1
                conn.commit()
                return deleted

    def _exists(self, owner: str, game: str) -> bool:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT 1 FROM game_sessions WHERE owner = %s AND game = %s",
                    (owner, game),
                )
                return cur.fetchone() is not None
