from __future__ import annotations

import logging
from typing import List, Optional

from domain.errors import ValidationError
from domain.models import User
from domain.repositories import IdentityRepository, UserRepository

from .ledger import MIRROR_PROVIDER, LedgerService

logger = logging.getLogger(__name__)

DISCORD_PROVIDER = "discord"
POINT_ACTIONS = ("add", "remove", "set")


class AccountService:
    """User registration, identity linking and admin point changes."""

    def __init__(
        self,
        user_repo: UserRepository,
        identity_repo: IdentityRepository,
        ledger: LedgerService,
    ) -> None:
        self._users = user_repo
        self._identities = identity_repo
        self._ledger = ledger

    def register(self, user_id: str, display_name: str) -> User:
        user_id = user_id.strip()
        if not user_id:
            raise ValidationError("User ID is required")
        self._users.add_user(User(id=user_id, display_name=display_name.strip() or user_id))
        return self._users.get_user(user_id)

    def list_users(self) -> List[User]:
        return self._users.get_all_users()

    def get(self, user_id: str) -> User:
        self._ledger.balance(user_id)  # raises UserNotFound
        return self._users.get_user(user_id)

    def _link(self, provider: str, user_id: str, external_id: str) -> None:
        external_id = external_id.strip()
        if not external_id:
            raise ValidationError("Username is required")
        self.get(user_id)
        self._identities.set_external_identity(provider, external_id, user_id)
        logger.info("Linked %s account %s to user %s", provider, external_id, user_id)

    def link_kick(self, user_id: str, username: str) -> User:
        self._link(MIRROR_PROVIDER, user_id, username)
        self._ledger.sync_from_mirror(user_id)
        return self.get(user_id)

    def link_discord(self, user_id: str, discord_id: str) -> User:
        self._link(DISCORD_PROVIDER, user_id, discord_id)
        return self.get(user_id)

    def find_discord(self, discord_id: str) -> Optional[User]:
        return self._identities.find_user_by_external(DISCORD_PROVIDER, discord_id)

    def change_points(self, user_id: str, points: int, action: str) -> int:
        if action not in POINT_ACTIONS:
            raise ValidationError("Action must be one of add, remove, set")
        if isinstance(points, bool) or not isinstance(points, int) or points < 0:
            raise ValidationError("Points must be a non-negative whole number")
        if points == 0 and action != "set":
            raise ValidationError("Points must be greater than 0 for add/remove actions")

        if action == "add":
            balance = self._ledger.credit(user_id, points)
        elif action == "remove":
            balance = self._ledger.debit(user_id, points)
        else:
            balance = self._ledger.set_balance(user_id, points)
        logger.info("Admin %s %s points for user %s, balance %s", action, points, user_id, balance)
        return balance
