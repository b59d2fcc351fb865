import unittest

from application.accounts import DISCORD_PROVIDER, AccountService
from application.ledger import MIRROR_PROVIDER, LedgerService
from domain.errors import InsufficientFunds, UserNotFound, ValidationError
from tests.fakes import FakePointsMirror, InMemoryIdentityRepository, InMemoryUserRepository


class AccountServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.users = InMemoryUserRepository()
        self.identities = InMemoryIdentityRepository(self.users)
        self.mirror = FakePointsMirror({"alice_kick": 750})
        self.ledger = LedgerService(self.users, self.identities, self.mirror)
        self.accounts = AccountService(self.users, self.identities, self.ledger)
        self.accounts.register("alice", "Alice")

    def test_register(self):
        user = self.accounts.register(" bob ", "")
        self.assertEqual((user.id, user.display_name, user.balance), ("bob", "bob", 0))
        with self.assertRaises(ValidationError):
            self.accounts.register("  ", "Nobody")

    def test_register_twice_keeps_balance(self):
        self.accounts.change_points("alice", 20, "add")
        self.accounts.register("alice", "Alice Again")
        self.assertEqual(self.accounts.get("alice").balance, 20)

    def test_get_unknown(self):
        with self.assertRaises(UserNotFound):
            self.accounts.get("ghost")

    def test_link_kick_pulls_mirror_balance(self):
        user = self.accounts.link_kick("alice", "alice_kick")
        self.assertEqual(user.balance, 750)
        self.assertEqual(self.identities.get_external_ids_for_user(MIRROR_PROVIDER, "alice"), ["alice_kick"])

    def test_relinking_replaces_previous_account(self):
        self.accounts.link_discord("alice", "111")
        self.accounts.link_discord("alice", "222")
        self.assertIsNone(self.accounts.find_discord("111"))
        self.assertEqual(self.accounts.find_discord("222").id, "alice")

    def test_link_requires_username(self):
        with self.assertRaises(ValidationError):
            self.accounts.link_kick("alice", " ")

    def test_change_points(self):
        self.assertEqual(self.accounts.change_points("alice", 100, "add"), 100)
        self.assertEqual(self.accounts.change_points("alice", 30, "remove"), 70)
        self.assertEqual(self.accounts.change_points("alice", 0, "set"), 0)
        with self.assertRaises(InsufficientFunds):
            self.accounts.change_points("alice", 1, "remove")

    def test_change_points_validation(self):
        with self.assertRaises(ValidationError):
            self.accounts.change_points("alice", 0, "add")
        with self.assertRaises(ValidationError):
            self.accounts.change_points("alice", -5, "set")
        with self.assertRaises(ValidationError):
            self.accounts.change_points("alice", 5, "double")

    def test_unlinked_discord_user(self):
        self.assertIsNone(self.accounts.find_discord("999"))
        self.assertEqual(DISCORD_PROVIDER, "discord")


if __name__ == "__main__":
    unittest.main()
