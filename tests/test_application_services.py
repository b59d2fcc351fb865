import unittest

from application.ledger import LedgerService
from application.services import GameService
from domain.errors import (
    CorruptedState,
    IllegalAction,
    InsufficientFunds,
    SessionConflict,
    SessionNotFound,
    SettlementFault,
    ValidationError,
)
from domain.models import (
    GAME_BLACKJACK,
    GAME_MINES,
    RESULT_LOSS,
    RESULT_PUSH,
    RESULT_WIN,
    WAGER_SETTLED,
    User,
)
from tests.fakes import (
    InMemoryHistoryRepository,
    InMemorySessionRepository,
    InMemoryUserRepository,
    InMemoryWagerJournal,
    ScriptedRandom,
    card,
)


class ExplodingHistory(InMemoryHistoryRepository):
    def record(self, entry) -> None:
        raise RuntimeError("history store unavailable")


class UnwritableSessions(InMemorySessionRepository):
    def create(self, session) -> bool:
        raise RuntimeError("session store unavailable")


class StolenSessions(InMemorySessionRepository):
    """Every claim loses to a concurrent writer."""

    def delete(self, owner, game, version=None) -> bool:
        return False


class LockedSessions(InMemorySessionRepository):
    """Sessions can be created but every later write fails."""

    def save(self, session) -> None:
        raise RuntimeError("database is locked")


class OnceStolenSessions(InMemorySessionRepository):
    """The first claim loses to a concurrent writer, later ones succeed."""

    def __init__(self):
        super().__init__()
        self.stolen = False

    def delete(self, owner, game, version=None) -> bool:
        if not self.stolen:
            self.stolen = True
            return False
        return super().delete(owner, game, version)


class UnpayableLedger(LedgerService):
    def credit(self, owner, amount):
        raise RuntimeError("ledger offline")


class GameServiceTestCase(unittest.TestCase):
    history_class = InMemoryHistoryRepository
    sessions_class = InMemorySessionRepository
    ledger_class = LedgerService

    def setUp(self) -> None:
        self.users = InMemoryUserRepository()
        self.users.add_user(User(id="alice", display_name="Alice", balance=1000))
        self.sessions = self.sessions_class()
        self.history = self.history_class()
        self.journal = InMemoryWagerJournal()
        self.ledger = self.ledger_class(self.users)

    def engine(self, **scripted) -> GameService:
        return GameService(
            self.ledger,
            self.sessions,
            self.history,
            self.journal,
            rng=ScriptedRandom(**scripted),
        )

    def balance(self) -> int:
        return self.users.get_user("alice").balance


class SingleRoundGameTests(GameServiceTestCase):
    def test_dice_win(self):
        result = self.engine(values=[0.4]).play_dice("alice", 100, 50, "under")

        self.assertAlmostEqual(result.outcome.roll, 40.0)
        self.assertEqual(result.outcome.payout, 198)
        self.assertEqual(result.balance, 1098)
        self.assertEqual(self.balance(), 1098)

        entry = self.history.entries[-1]
        self.assertEqual((entry.game, entry.bet, entry.payout, entry.result), ("dice", 100, 198, RESULT_WIN))
        self.assertEqual(entry.detail["direction"], "under")
        self.assertEqual(self.journal.open_wagers(), [])

    def test_dice_loss(self):
        result = self.engine(values=[0.4]).play_dice("alice", 100, 50, "over")
        self.assertEqual(result.balance, 900)
        self.assertEqual(self.history.entries[-1].result, RESULT_LOSS)

    def test_limbo(self):
        result = self.engine(values=[0.5]).play_limbo("alice", 100, 1.5)
        self.assertEqual(result.outcome.crash_point, 1.98)
        self.assertEqual(result.balance, 1050)
        self.assertEqual(self.history.entries[-1].detail["targetMultiplier"], 1.5)

    def test_keno_low_risk_single_hit(self):
        drawn = [7, 1, 2, 3, 4, 5, 6, 8, 9, 10]
        result = self.engine(samples=[drawn]).play_keno("alice", 100, [7], "low")
        self.assertEqual(result.outcome.hits, 1)
        self.assertEqual(result.balance, 1085)
        self.assertEqual(self.history.entries[-1].detail["drawnNumbers"], drawn)

    def test_invalid_bet_touches_nothing(self):
        games = self.engine()
        with self.assertRaises(ValidationError):
            games.play_dice("alice", 0, 50, "under")
        with self.assertRaises(ValidationError):
            games.play_dice("alice", 100, 50, "sideways")
        self.assertEqual(self.balance(), 1000)
        self.assertEqual(self.journal.wagers, {})
        self.assertEqual(self.history.entries, [])

    def test_insufficient_funds_leaves_no_open_wager(self):
        with self.assertRaises(InsufficientFunds):
            self.engine().play_dice("alice", 2000, 50, "under")
        self.assertEqual(self.journal.wagers, {})

    def test_history_is_newest_first(self):
        games = self.engine(values=[0.4, 0.9])
        games.play_dice("alice", 100, 50, "under")
        games.play_dice("alice", 50, 50, "under")
        self.assertEqual([e.bet for e in games.history("alice")], [50, 100])
        self.assertEqual(len(games.history("alice", limit=1)), 1)


class MinesServiceTests(GameServiceTestCase):
    def test_reveal_safe_then_mine(self):
        games = self.engine(samples=[[0, 1, 2]])
        step = games.start_mines("alice", 100, 3)
        self.assertEqual(step.balance, 900)
        self.assertIsNotNone(games.active_mines("alice"))

        step = games.reveal_mine("alice", 10)
        self.assertFalse(step.finished)
        self.assertAlmostEqual(step.outcome.multiplier, 1.125)

        step = games.reveal_mine("alice", 1)
        self.assertTrue(step.finished)
        self.assertTrue(step.outcome.hit_mine)
        self.assertEqual(step.balance, 900)
        self.assertIsNone(games.active_mines("alice"))

        entry = self.history.entries[-1]
        self.assertEqual(entry.result, RESULT_LOSS)
        self.assertEqual(entry.detail["minePosition"], 1)
        self.assertEqual(entry.detail["revealedTiles"], 1)

        with self.assertRaises(SessionNotFound):
            games.reveal_mine("alice", 12)

    def test_cashout_once(self):
        games = self.engine(samples=[[0, 1, 2]])
        games.start_mines("alice", 100, 3)
        games.reveal_mine("alice", 10)

        step = games.cashout_mines("alice")
        self.assertEqual(step.outcome.payout, 112)
        self.assertEqual(step.balance, 1012)
        self.assertTrue(self.history.entries[-1].detail["cashout"])

        with self.assertRaises(SessionNotFound):
            games.cashout_mines("alice")
        self.assertEqual(self.balance(), 1012)

    def test_cashout_without_reveal(self):
        games = self.engine(samples=[[0, 1, 2]])
        games.start_mines("alice", 100, 3)
        with self.assertRaises(IllegalAction):
            games.cashout_mines("alice")
        self.assertIsNotNone(games.active_mines("alice"))

    def test_second_game_is_rejected_before_debit(self):
        games = self.engine(samples=[[0, 1, 2]])
        games.start_mines("alice", 100, 3)
        with self.assertRaises(SessionConflict):
            games.start_mines("alice", 100, 3)
        self.assertEqual(self.balance(), 900)
        self.assertEqual(len(self.journal.open_wagers()), 1)

    def test_stale_session_copy_cannot_settle(self):
        games = self.engine(samples=[[0, 1, 2]])
        games.start_mines("alice", 100, 3)
        stale = games.active_mines("alice")
        games.reveal_mine("alice", 10)

        with self.assertRaises(SessionConflict):
            games._claim(stale)

    def test_corrupted_session_is_discarded(self):
        self.sessions.rows[("alice", GAME_MINES)] = ("{not json", 1)
        games = self.engine(samples=[[0, 1, 2]])

        with self.assertRaises(CorruptedState):
            games.reveal_mine("alice", 3)
        self.assertNotIn(("alice", GAME_MINES), self.sessions.rows)

        games.start_mines("alice", 100, 3)
        self.assertIsNotNone(games.active_mines("alice"))


class BlackjackServiceTests(GameServiceTestCase):
    def test_natural_settles_on_deal(self):
        games = self.engine(deck_top=[card("A"), card("K"), card("9"), card("8")])
        step = games.start_blackjack("alice", 100)

        self.assertTrue(step.finished)
        self.assertEqual(step.total_payout, 250)
        self.assertEqual(step.balance, 1150)
        self.assertIsNone(games.active_blackjack("alice"))

    def test_double_charges_extra_stake(self):
        games = self.engine(deck_top=[card("5"), card("6"), card("9"), card("8"), card("10")])
        step = games.start_blackjack("alice", 100)
        self.assertEqual(step.balance, 900)

        step = games.blackjack_double("alice")
        self.assertTrue(step.finished)
        self.assertEqual(step.total_payout, 400)
        self.assertEqual(step.balance, 1200)

        entry = self.history.entries[-1]
        self.assertEqual((entry.bet, entry.payout, entry.result), (200, 400, RESULT_WIN))
        wager = self.journal.get(step.game.wager_id)
        self.assertEqual((wager.stake, wager.status), (200, WAGER_SETTLED))

    def test_double_without_funds(self):
        self.users.set_balance("alice", 150)
        games = self.engine(deck_top=[card("5"), card("6"), card("9"), card("8"), card("10")])
        game = games.start_blackjack("alice", 100).game

        with self.assertRaises(InsufficientFunds):
            games.blackjack_double("alice")
        self.assertEqual(self.balance(), 50)
        self.assertEqual(self.journal.get(game.wager_id).stake, 100)
        self.assertEqual(len(games.active_blackjack("alice").hand.cards), 2)

    def test_split_round(self):
        games = self.engine(
            deck_top=[
                card("8"), card("8", "hearts"), card("9"), card("8", "diamonds"),
                card("3", "clubs"), card("10", "clubs"),
            ]
        )
        games.start_blackjack("alice", 100)

        step = games.blackjack_split("alice")
        self.assertFalse(step.finished)
        self.assertEqual(step.balance, 800)
        self.assertTrue(games.active_blackjack("alice").has_split)

        self.assertFalse(games.blackjack_stand("alice").finished)
        step = games.blackjack_stand("alice")
        self.assertTrue(step.finished)
        self.assertEqual(step.total_payout, 200)
        self.assertEqual(step.balance, 1000)

        entry = self.history.entries[-1]
        self.assertEqual((entry.bet, entry.result), (200, RESULT_PUSH))
        self.assertEqual(len(entry.detail["playerHands"]), 2)

    def test_hit_persists_state(self):
        games = self.engine(deck_top=[card("2"), card("3"), card("9"), card("8"), card("4")])
        games.start_blackjack("alice", 100)
        step = games.blackjack_hit("alice")
        self.assertFalse(step.finished)
        self.assertEqual(games.active_blackjack("alice").hand.total, 9)

    def test_no_game(self):
        with self.assertRaises(SessionNotFound):
            self.engine().blackjack_hit("alice")


class StolenSessionTests(GameServiceTestCase):
    sessions_class = StolenSessions

    def test_failed_claim_refunds_double(self):
        games = self.engine(deck_top=[card("5"), card("6"), card("9"), card("8"), card("10")])
        game = games.start_blackjack("alice", 100).game

        with self.assertRaises(SessionConflict):
            games.blackjack_double("alice")
        self.assertEqual(self.balance(), 900)
        self.assertEqual(self.journal.get(game.wager_id).stake, 100)


class UnwritableSessionTests(GameServiceTestCase):
    sessions_class = UnwritableSessions

    def test_stake_refunded_when_session_cannot_be_stored(self):
        with self.assertRaises(RuntimeError):
            self.engine(samples=[[0, 1, 2]]).start_mines("alice", 100, 3)
        self.assertEqual(self.balance(), 1000)
        self.assertEqual(self.journal.wagers, {})


class LockedSessionTests(GameServiceTestCase):
    sessions_class = LockedSessions

    def test_split_stake_refunded_when_store_fails(self):
        games = self.engine(
            deck_top=[card("8"), card("8", "hearts"), card("9"), card("8", "diamonds"), card("3", "clubs")]
        )
        game = games.start_blackjack("alice", 100).game

        with self.assertLogs("application.services", level="ERROR"):
            with self.assertRaises(RuntimeError):
                games.blackjack_split("alice")
        self.assertEqual(self.balance(), 900)
        self.assertEqual(self.journal.get(game.wager_id).stake, 100)
        self.assertFalse(games.active_blackjack("alice").has_split)


class NaturalClaimTests(GameServiceTestCase):
    sessions_class = OnceStolenSessions

    def test_failed_claim_is_a_fault_and_stand_settles_it(self):
        games = self.engine(deck_top=[card("A"), card("K"), card("9"), card("8")])
        with self.assertLogs("application.services", level="CRITICAL"):
            with self.assertRaises(SettlementFault) as ctx:
                games.start_blackjack("alice", 100)
        self.assertEqual(self.balance(), 900)
        self.assertIsNotNone(games.active_blackjack("alice"))

        step = games.blackjack_stand("alice")
        self.assertEqual(step.total_payout, 250)
        self.assertEqual(step.balance, 1150)
        self.assertEqual(self.journal.get(ctx.exception.wager_id).status, WAGER_SETTLED)
        self.assertIsNone(games.active_blackjack("alice"))


class SettlementFaultTests(GameServiceTestCase):
    history_class = ExplodingHistory

    def test_paid_wager_is_settled_before_history(self):
        games = self.engine(values=[0.4])
        with self.assertLogs("application.services", level="CRITICAL"):
            with self.assertRaises(SettlementFault) as ctx:
                games.play_dice("alice", 100, 50, "under")

        self.assertEqual(self.balance(), 1098)
        self.assertEqual(self.journal.open_wagers(), [])
        self.assertEqual(self.journal.get(ctx.exception.wager_id).status, WAGER_SETTLED)

    def test_blackjack_fault(self):
        games = self.engine(deck_top=[card("K"), card("Q"), card("9"), card("8")])
        game = games.start_blackjack("alice", 100).game
        with self.assertLogs("application.services", level="CRITICAL"):
            with self.assertRaises(SettlementFault):
                games.blackjack_stand("alice")
        self.assertEqual(self.journal.get(game.wager_id).status, WAGER_SETTLED)


class UnpaidWagerTests(GameServiceTestCase):
    ledger_class = UnpayableLedger

    def test_failed_credit_leaves_wager_open(self):
        games = self.engine(values=[0.4])
        with self.assertLogs("application.services", level="CRITICAL"):
            with self.assertRaises(SettlementFault) as ctx:
                games.play_dice("alice", 100, 50, "under")

        open_wagers = self.journal.open_wagers()
        self.assertEqual([w.id for w in open_wagers], [ctx.exception.wager_id])
        self.assertEqual(open_wagers[0].game, "dice")
        self.assertEqual(self.balance(), 900)


if __name__ == "__main__":
    unittest.main()
