from __future__ import annotations

from typing import List, Optional

import psycopg2

from domain.models import User
from domain.repositories import UserRepository


class PostgresUserRepository(UserRepository):
    """
    Postgres-backed implementation of `UserRepository`.

    Owns the `users` table. Balance updates use `UPDATE ... RETURNING` with
    the non-negative check in the WHERE clause, so each change is one
    atomic statement.
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
                    CREATE TABLE IF NOT EXISTS users (
                        id TEXT PRIMARY KEY,
                        display_name TEXT NOT NULL,
                        balance BIGINT NOT NULL DEFAULT 0 CHECK (balance >= 0)
                    )
                    """
                )
                conn.commit()

    @staticmethod
    def _to_domain(row) -> User:
        return User(
            id=str(row[0]),
            display_name=row[1],
            balance=int(row[2]),
        )

    def get_user(self, user_id: str) -> Optional[User]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT id, display_name, balance FROM users WHERE id = %s",
                    (user_id,),
                )
                row = cur.fetchone()
                if not row:
                    return None
                return self._to_domain(row)

    def get_all_users(self) -> List[User]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT id, display_name, balance FROM users ORDER BY id")
                return [self._to_domain(row) for row in cur.fetchall()]

    def add_user(self, user: User) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO users (id, display_name, balance)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (id) DO NOTHING
                    """,
                    (user.id, user.display_name, max(0, user.balance)),
                )
                conn.commit()

    def update_balance(self, user_id: str, delta: int) -> Optional[int]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE users
                    SET balance = balance + %s
                    WHERE id = %s AND balance + %s >= 0
                    RETURNING balance
                    """,
                    (delta, user_id, delta),
                )
                row = cur.fetchone()
                conn.commit()
                return int(row[0]) if row else None

    def set_balance(self, user_id: str, balance: int) -> Optional[int]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "UPDATE users SET balance = %s WHERE id = %s RETURNING balance",
                    (max(0, balance), user_id),
                )
                row = cur.fetchone()
                conn.commit()
                return int(row[0]) if row else None
