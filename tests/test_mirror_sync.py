import asyncio
import unittest

from fastapi.testclient import TestClient

from application.accounts import AccountService
from application.ledger import MIRROR_PROVIDER, LedgerService
from application.services import GameService
from domain.models import User
from interfaces.http.routes import create_web_app
from interfaces.mirror_sync import sync_forever, sync_once
from tests.fakes import (
    FakePointsMirror,
    InMemoryHistoryRepository,
    InMemoryIdentityRepository,
    InMemorySessionRepository,
    InMemoryUserRepository,
    InMemoryWagerJournal,
)


class FlakySync:
    """Fails on its first call, counts the rest."""

    def __init__(self):
        self.calls = 0

    def __call__(self) -> int:
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("mirror unreachable")
        return 1


class SyncLoopTests(unittest.IsolatedAsyncioTestCase):
    async def test_sync_once_logs_failures(self):
        sync = FlakySync()
        with self.assertLogs("interfaces.mirror_sync", level="ERROR"):
            await sync_once(sync)
        await sync_once(sync)
        self.assertEqual(sync.calls, 2)

    async def test_loop_keeps_going_after_a_failure(self):
        sync = FlakySync()
        with self.assertLogs("interfaces.mirror_sync", level="ERROR"):
            task = asyncio.create_task(sync_forever(sync, 0))

            async def wait_for_calls():
                while sync.calls < 3:
                    await asyncio.sleep(0.01)

            try:
                await asyncio.wait_for(wait_for_calls(), timeout=5)
            finally:
                task.cancel()
        self.assertGreaterEqual(sync.calls, 3)


class WebAppSyncTests(unittest.TestCase):
    def test_startup_pulls_mirror_balances(self):
        users = InMemoryUserRepository()
        users.add_user(User(id="alice", display_name="Alice", balance=100))
        identities = InMemoryIdentityRepository(users)
        identities.set_external_identity(MIRROR_PROVIDER, "alice_kick", "alice")
        ledger = LedgerService(users, identities, FakePointsMirror({"alice_kick": 4321}))
        games = GameService(ledger, InMemorySessionRepository(), InMemoryHistoryRepository(), InMemoryWagerJournal())
        app = create_web_app(games, AccountService(users, identities, ledger), mirror_sync=ledger.sync_all)

        with TestClient(app) as client:
            response = client.get("/api/users/alice/points")
        self.assertEqual(response.json()["points"], 4321)


if __name__ == "__main__":
    unittest.main()
