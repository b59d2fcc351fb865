from __future__ import annotations

import sqlite3
from typing import List, Optional

from domain.models import User
from domain.repositories import UserRepository


class SqliteUserRepository(UserRepository):
    """
    SQLite-backed implementation of `UserRepository`.

    This repository owns the `users` table and maps rows to the `User`
    domain model. It is self-initialising: the table is created if needed.

    Balance changes are a single conditional UPDATE, so two concurrent
    debits can never take the balance below zero.
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
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    display_name TEXT NOT NULL,
                    balance INTEGER NOT NULL DEFAULT 0 CHECK (balance >= 0)
                )
                """
            )
            conn.commit()

    @staticmethod
    def _to_domain(row: sqlite3.Row) -> User:
        return User(
            id=str(row[0]),
            display_name=row[1],
            balance=int(row[2]),
        )

    @staticmethod
    def _read_balance(cur: sqlite3.Cursor, user_id: str) -> Optional[int]:
        cur.execute("SELECT balance FROM users WHERE id = ?", (user_id,))
        row = cur.fetchone()
        return int(row[0]) if row else None

    def get_user(self, user_id: str) -> Optional[User]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT id, display_name, balance FROM users WHERE id = ?", (user_id,))
            row = cur.fetchone()
            if not row:
                return None
            return self._to_domain(row)

    def get_all_users(self) -> List[User]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT id, display_name, balance FROM users ORDER BY id")
            rows = cur.fetchall()
            return [self._to_domain(row) for row in rows]

    def add_user(self, user: User) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT OR IGNORE INTO users (id, display_name, balance)
                VALUES (?, ?, ?)
                """,
                (user.id, user.display_name, max(0, user.balance)),
            )
            conn.commit()

    def update_balance(self, user_id: str, delta: int) -> Optional[int]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                UPDATE users
                SET balance = balance + ?
                WHERE id = ? AND balance + ? >= 0
                """,
                (delta, user_id, delta),
            )
            if cur.rowcount != 1:
                conn.rollback()
                return None
            # Same transaction as the UPDATE, so this is the balance it wrote.
            balance = self._read_balance(cur, user_id)
            conn.commit()
            return balance

    def set_balance(self, user_id: str, balance: int) -> Optional[int]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute("UPDATE users SET balance = ? WHERE id = ?", (max(0, balance), user_id))
            if cur.rowcount != 1:
                conn.rollback()
                return None
            stored = self._read_balance(cur, user_id)
            conn.commit()
            return stored
