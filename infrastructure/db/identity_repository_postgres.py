from __future__ import annotations

from typing import List, Optional

import psycopg2

from domain.models import User
from domain.repositories import IdentityRepository, UserRepository


class PostgresIdentityRepository(IdentityRepository):
    """
    Postgres-backed implementation of `IdentityRepository`.

    Same `linked_accounts` layout as the SQLite store: one account per
    (provider, user), replaced in a single transaction on relink.
    """

    def __init__(self, db_params: dict, user_repo: UserRepository) -> None:
        self._db_params = db_params
        self._user_repo = user_repo
        self._ensure_table()

    def _get_connection(self):
        return psycopg2.connect(**self._db_params)

    def _ensure_table(self) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS linked_accounts (
                        provider TEXT NOT NULL,
                        account TEXT NOT NULL,
                        user_id TEXT NOT NULL REFERENCES users (id),
                        linked_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                        PRIMARY KEY (provider, account),
                        UNIQUE (provider, user_id)
                    )
                    """
                )
                conn.commit()

    def set_external_identity(self, provider: str, provider_user_id: str, user_id: str) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM linked_accounts WHERE provider = %s AND (user_id = %s OR account = %s)",
                    (provider, user_id, provider_user_id),
                )
                cur.execute(
                    "INSERT INTO linked_accounts (provider, account, user_id) VALUES (%s, %s, %s)",
                    (provider, provider_user_id, user_id),
                )
                conn.commit()

    def clear_external_identity(self, provider: str, provider_user_id: str) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM linked_accounts WHERE provider = %s AND account = %s",
                    (provider, provider_user_id),
                )
                conn.commit()

    def find_user_by_external(self, provider: str, provider_user_id: str) -> Optional[User]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT user_id FROM linked_accounts WHERE provider = %s AND account = %s",
                    (provider, provider_user_id),
                )
                row = cur.fetchone()
        return self._user_repo.get_user(row[0]) if row else None

    def get_external_ids_for_user(self, provider: str, user_id: str) -> List[str]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT account FROM linked_accounts WHERE provider = %s AND user_id = %s",
                    (provider, user_id),
                )
                return [row[0] for row in cur.fetchall()]
