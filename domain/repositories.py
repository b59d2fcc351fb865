from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol, Union

from .models import BlackjackGame, GameHistoryEntry, MinesGame, User, Wager

GameSession = Union[MinesGame, BlackjackGame]


class UserRepository(Protocol):
    """
    Abstraction over user persistence.

    Implementations are responsible for:
    - Mapping between database rows and the `User` domain model.
    - Hiding any SQL / driver details from the application layer.
    - Never letting a balance go below zero.
    """

    def get_user(self, user_id: str) -> Optional[User]:
        """Return the user with the given internal ID, or None if not found."""

        ...

    def get_all_users(self) -> List[User]:
        """Return all users currently known to the system."""

        ...

    def add_user(self, user: User) -> None:
        """Persist a new user."""

        ...

    def update_balance(self, user_id: str, delta: int) -> Optional[int]:
        """
        Adjust a user's balance by `delta` and return the new balance.

        Implementations must apply the delta atomically and refuse it
        (returning None, balance untouched) when the result would be
        negative or the user does not exist.
        """

        ...

    def set_balance(self, user_id: str, balance: int) -> Optional[int]:
        """Overwrite a user's balance; None if the user does not exist."""

        ...


class IdentityRepository(Protocol):
    """
    Maps external identities (Kick, Discord) to internal user IDs.

    The application layer works exclusively with internal user IDs and
    leaves provider-specific identifiers to this abstraction.
    """

    def find_user_by_external(
        self,
        provider: str,
        provider_user_id: str,
    ) -> Optional[User]:
        """Return the user mapped to the given external identity, if any."""

        ...

    def set_external_identity(
        self,
        provider: str,
        provider_user_id: str,
        user_id: str,
    ) -> None:
        """
        Link an external account to a user.

        A user has at most one account per provider, and an account belongs
        to at most one user: any previous link on either side is dropped.
        """

        ...

    def clear_external_identity(
        self,
        provider: str,
        provider_user_id: str,
    ) -> None:
        """Remove any mapping for the given external identity."""

        ...

    def get_external_ids_for_user(
        self,
        provider: str,
        user_id: str,
    ) -> List[str]:
        """
        Return all external IDs (e.g. Kick usernames) associated with
        a given internal user ID for the specified provider.
        """

        ...


class SessionRepository(Protocol):
    """
    Typed store for in-progress multi-step games, one per (owner, game).

    Sessions are validated on the way out: a row that does not decode into
    a structurally sound game is deleted and reported as `CorruptedState`.
    """

    def create(self, session: GameSession) -> bool:
        """
        Insert `session` unless the owner already has one for this game.

        Returns False (and stores nothing) when a session already exists.
        Must be atomic at the storage layer.
        """

        ...

    def get(self, owner: str, game: str) -> Optional[GameSession]:
        ...

    def save(self, session: GameSession) -> None:
        """
        Persist an updated session.

        Raises `SessionConflict` if the stored version no longer matches
        `session.version` (another request got there first). On success the
        session's version is bumped.
        """

        ...

    def delete(self, owner: str, game: str, version: Optional[int] = None) -> bool:
        """
        Delete the session, optionally only at a given version.

        Returns True if this call removed it. Terminal transitions use this
        as their claim: only one caller can settle a session.
        """

        ...


class HistoryRepository(Protocol):
    """Append-only record of resolved wagers."""

    def record(self, entry: GameHistoryEntry) -> None:
        ...

    def list_for_user(self, owner: str, limit: int = 50) -> List[GameHistoryEntry]:
        """Most recent first."""

        ...


class WagerJournal(Protocol):
    """
    Journal of debited wagers, used to find rounds that were paid for but
    never settled.
    """

    def open(self, wager: Wager) -> None:
        ...

    def get(self, wager_id: str) -> Optional[Wager]:
        ...

    def add_stake(self, wager_id: str, amount: int) -> None:
        """Record extra stake (double/split); negative amounts undo it."""

        ...

    def close(self, wager_id: str, status: str) -> bool:
        """
        Move an open wager to `status`. Returns False if it was not open,
        so only one closer wins.
        """

        ...

    def discard(self, wager_id: str) -> None:
        """Forget a wager whose debit never happened or was compensated."""

        ...

    def list_open(self, older_than: datetime) -> List[Wager]:
        ...


class PointsMirror(Protocol):
    """
    External points system that mirrors a user's balance (e.g. Kicklet).

    Every method raises `PointsMirrorError` on failure.
    """

    def get_points(self, account: str) -> int:
        ...

    def add_points(self, account: str, points: int) -> None:
        ...

    def remove_points(self, account: str, points: int) -> None:
        ...

    def set_points(self, account: str, points: int) -> None:
        ...
