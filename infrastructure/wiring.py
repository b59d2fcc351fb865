from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from application.accounts import AccountService
from application.ledger import LedgerService
from application.reconciliation import Reconciler
from application.services import GameService
from domain.paytables import load_keno_paytable
from domain.repositories import (
    HistoryRepository,
    IdentityRepository,
    PointsMirror,
    SessionRepository,
    UserRepository,
    WagerJournal,
)

from .config import Settings

logger = logging.getLogger(__name__)


@dataclass
class Container:
    users: UserRepository
    identities: IdentityRepository
    sessions: SessionRepository
    history: HistoryRepository
    journal: WagerJournal
    ledger: LedgerService
    accounts: AccountService
    games: GameService
    reconciler: Reconciler


def _sqlite_repositories(db_path: str):
    from .db.history_repository_sqlite import SqliteHistoryRepository
    from .db.identity_repository_sqlite import SqliteIdentityRepository
    from .db.session_repository_sqlite import SqliteSessionRepository
    from .db.user_repository_sqlite import SqliteUserRepository
    from .db.wager_journal_sqlite import SqliteWagerJournal

    users = SqliteUserRepository(db_path)
    return (
        users,
        SqliteIdentityRepository(db_path, users),
        SqliteSessionRepository(db_path),
        SqliteHistoryRepository(db_path),
        SqliteWagerJournal(db_path),
    )


def _postgres_repositories(db_params: dict):
    from .db.history_repository_postgres import PostgresHistoryRepository
    from .db.identity_repository_postgres import PostgresIdentityRepository
    from .db.session_repository_postgres import PostgresSessionRepository
    from .db.user_repository_postgres import PostgresUserRepository
    from .db.wager_journal_postgres import PostgresWagerJournal

    users = PostgresUserRepository(db_params)
    return (
        users,
        PostgresIdentityRepository(db_params, users),
        PostgresSessionRepository(db_params),
        PostgresHistoryRepository(db_params),
        PostgresWagerJournal(db_params),
    )


def _points_mirror(settings: Settings) -> Optional[PointsMirror]:
    if not settings.mirror_enabled:
        logger.info("Kicklet mirroring disabled; balances are local only")
        return None

    from .kicklet import KickletPointsMirror

    return KickletPointsMirror(
        api_token=settings.kicklet_api_token,
        channel_id=settings.kick_channel_id,
        timeout=settings.kicklet_timeout,
        retries=settings.kicklet_retries,
    )


def build_container(settings: Settings) -> Container:
    if settings.db_backend == "postgres":
        users, identities, sessions, history, journal = _postgres_repositories(settings.db_params)
    else:
        users, identities, sessions, history, journal = _sqlite_repositories(settings.db_path)
    logger.info("Using %s storage", settings.db_backend)

    ledger = LedgerService(users, identities, _points_mirror(settings))
    games = GameService(
        ledger,
        sessions,
        history,
        journal,
        paytable=load_keno_paytable(settings.keno_paytable_path),
    )
    reconciler = Reconciler(
        ledger,
        journal,
        sessions,
        history,
        grace=timedelta(seconds=settings.reconcile_after_seconds),
    )
    return Container(
        users=users,
        identities=identities,
        sessions=sessions,
        history=history,
        journal=journal,
        ledger=ledger,
        accounts=AccountService(users, identities, ledger),
        games=games,
        reconciler=reconciler,
    )
