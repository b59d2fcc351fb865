from __future__ import annotations

import logging
from typing import Callable, Optional

from domain.errors import InsufficientFunds, PointsMirrorError, UserNotFound, ValidationError
from domain.models import User
from domain.repositories import IdentityRepository, PointsMirror, UserRepository

logger = logging.getLogger(__name__)

MIRROR_PROVIDER = "kick"


def _require_int(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("Amount must be a whole number of points.")


class LedgerService:
    """
    The only writer of user balances.

    When a user has a linked Kick account and a points mirror is configured,
    every change is applied to the mirror first and the mirror's resulting
    balance is stored locally as the source of truth. If the mirror fails,
    the change is applied locally only and a warning is logged; the two
    balances can drift until the next sync.
    """

    def __init__(
        self,
        user_repo: UserRepository,
        identity_repo: Optional[IdentityRepository] = None,
        mirror: Optional[PointsMirror] = None,
    ) -> None:
        self._users = user_repo
        self._identities = identity_repo
        self._mirror = mirror

    def _require_user(self, owner: str) -> User:
        user = self._users.get_user(owner)
        if user is None:
            raise UserNotFound(owner)
        return user

    def _mirror_account(self, owner: str) -> Optional[str]:
        if self._mirror is None or self._identities is None:
            return None
        accounts = self._identities.get_external_ids_for_user(MIRROR_PROVIDER, owner)
        return accounts[0] if accounts else None

    def _mirrored(self, owner: str, apply: Callable[[str], None]) -> Optional[int]:
        """
        Apply a change through the mirror and store its balance locally.

        Returns None when there is no mirror account or the mirror failed,
        in which case the caller falls back to a local update.
        """

        account = self._mirror_account(owner)
        if account is None:
            return None
        try:
            apply(account)
            remote = self._mirror.get_points(account)
        except PointsMirrorError:
            logger.warning(
                "Points mirror failed for user %s (%s), falling back to local update",
                owner,
                account,
                exc_info=True,
            )
            return None

        balance = self._users.set_balance(owner, max(0, remote))
        if balance is None:
            raise UserNotFound(owner)
        return balance

    def balance(self, owner: str) -> int:
        return self._require_user(owner).balance

    def debit(self, owner: str, amount: int) -> int:
        """Take `amount` points from `owner`, returning the new balance."""

        _require_int(amount)
        if amount <= 0:
            raise ValidationError("Amount must be greater than zero.")

        user = self._require_user(owner)
        if amount > user.balance:
            raise InsufficientFunds()

        mirrored = self._mirrored(owner, lambda account: self._mirror.remove_points(account, amount))
        if mirrored is not None:
            return mirrored

        balance = self._users.update_balance(owner, -amount)
        if balance is None:
            # Lost a race with another debit between the check and the update.
            raise InsufficientFunds()
        logger.debug("Debited %s from %s, balance %s", amount, owner, balance)
        return balance

    def credit(self, owner: str, amount: int) -> int:
        """Give `amount` points to `owner`, returning the new balance."""

        _require_int(amount)
        if amount < 0:
            raise ValidationError("Amount cannot be negative.")
        if amount == 0:
            return self.balance(owner)

        self._require_user(owner)
        mirrored = self._mirrored(owner, lambda account: self._mirror.add_points(account, amount))
        if mirrored is not None:
            return mirrored

        balance = self._users.update_balance(owner, amount)
        if balance is None:
            raise UserNotFound(owner)
        logger.debug("Credited %s to %s, balance %s", amount, owner, balance)
        return balance

    def set_balance(self, owner: str, amount: int) -> int:
        _require_int(amount)
        amount = max(0, amount)

        self._require_user(owner)
        mirrored = self._mirrored(owner, lambda account: self._mirror.set_points(account, amount))
        if mirrored is not None:
            return mirrored

        balance = self._users.set_balance(owner, amount)
        if balance is None:
            raise UserNotFound(owner)
        return balance

    def sync_from_mirror(self, owner: str) -> int:
        """Pull the mirror's balance without changing it."""

        user = self._require_user(owner)
        account = self._mirror_account(owner)
        if account is None:
            return user.balance
        try:
            remote = self._mirror.get_points(account)
        except PointsMirrorError:
            logger.warning("Could not sync points for user %s from mirror", owner, exc_info=True)
            return user.balance

        if remote == user.balance:
            return user.balance
        balance = self._users.set_balance(owner, max(0, remote))
        return user.balance if balance is None else balance

    def sync_all(self) -> int:
        """Pull mirror balances for every linked user; returns how many were linked."""

        if self._mirror is None or self._identities is None:
            return 0
        linked = 0
        for user in self._users.get_all_users():
            if self._mirror_account(user.id) is None:
                continue
            self.sync_from_mirror(user.id)
            linked += 1
        logger.debug("Synced %d linked user(s) from the points mirror", linked)
        return linked
