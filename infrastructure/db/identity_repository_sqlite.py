from __future__ import annotations

import sqlite3
from typing import List, Optional

from domain.models import User
from domain.repositories import IdentityRepository, UserRepository


class SqliteIdentityRepository(IdentityRepository):
    """
    SQLite-backed implementation of `IdentityRepository`.

    `linked_accounts` holds at most one account per (provider, user): linking
    a new Kick username or Discord ID replaces the old one, and an account
    linked to someone else moves over.
    """

    def __init__(self, db_path: str, user_repo: UserRepository) -> None:
        self._db_path = db_path
        self._user_repo = user_repo
        self._ensure_table()

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _ensure_table(self) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS linked_accounts (
                    provider TEXT NOT NULL,
                    account TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    linked_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (provider, account),
                    UNIQUE (provider, user_id)
                )
                """
            )
            conn.commit()

    def set_external_identity(self, provider: str, provider_user_id: str, user_id: str) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "DELETE FROM linked_accounts WHERE provider = ? AND (user_id = ? OR account = ?)",
                (provider, user_id, provider_user_id),
            )
            cur.execute(
                "INSERT INTO linked_accounts (provider, account, user_id) VALUES (?, ?, ?)",
                (provider, provider_user_id, user_id),
            )
            conn.commit()

    def clear_external_identity(self, provider: str, provider_user_id: str) -> None:
        with self._get_connection() as conn:
            conn.execute(
                "DELETE FROM linked_accounts WHERE provider = ? AND account = ?",
                (provider, provider_user_id),
            )
            conn.commit()

    def find_user_by_external(self, provider: str, provider_user_id: str) -> Optional[User]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT user_id FROM linked_accounts WHERE provider = ? AND account = ?",
                (provider, provider_user_id),
            )
            row = cur.fetchone()
        return self._user_repo.get_user(row[0]) if row else None

    def get_external_ids_for_user(self, provider: str, user_id: str) -> List[str]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT account FROM linked_accounts WHERE provider = ? AND user_id = ?",
                (provider, user_id),
            )
            return [row[0] for row in cur.fetchall()]
