import unittest

from domain import blackjack
from domain.errors import CorruptedState, IllegalAction
from domain.models import (
    RESULT_BLACKJACK,
    RESULT_LOSS,
    RESULT_PUSH,
    RESULT_WIN,
    STATUS_DEALER_TURN,
    STATUS_FINISHED,
    STATUS_PLAYING,
    BlackjackGame,
    hand_total,
)
from tests.fakes import ScriptedRandom, card


def _deal(*cards, bet=100):
    """Deal with `cards` on top: player, player, dealer, dealer, then draws."""

    return blackjack.deal("u1", "w1", bet, ScriptedRandom(deck_top=cards))


class HandValueTests(unittest.TestCase):
    def test_ace_king_is_natural(self):
        game = _deal(card("A"), card("K"), card("9"), card("7"))
        self.assertEqual(game.hands[0].total, 21)
        self.assertTrue(game.hands[0].is_blackjack)

    def test_aces_are_reduced_one_at_a_time(self):
        self.assertEqual(hand_total([card("A"), card("A", "hearts"), card("9")]), 21)
        self.assertEqual(hand_total([card("A"), card("A", "hearts")]), 12)
        self.assertEqual(hand_total([card("K"), card("Q"), card("5")]), 25)


class BlackjackRoundTests(unittest.TestCase):
    def test_deal_order_and_split_flag(self):
        game = _deal(card("8"), card("8", "hearts"), card("9"), card("7"))
        self.assertEqual([c.rank for c in game.hand.cards], ["8", "8"])
        self.assertEqual([c.rank for c in game.dealer], ["9", "7"])
        self.assertTrue(game.can_split)
        self.assertTrue(game.can_double)
        self.assertEqual(len(game.deck), 48)

    def test_natural_goes_straight_to_dealer(self):
        game = _deal(card("A"), card("K"), card("9"), card("8"))
        self.assertEqual(game.status, STATUS_DEALER_TURN)

        results = blackjack.settle(game)
        self.assertEqual(game.status, STATUS_FINISHED)
        self.assertEqual(results[0].result, RESULT_BLACKJACK)
        self.assertEqual(results[0].payout, 250)

    def test_natural_against_dealer_natural_pushes(self):
        game = _deal(card("A"), card("K"), card("A", "hearts"), card("K", "hearts"))
        results = blackjack.settle(game)
        self.assertEqual(results[0].result, RESULT_PUSH)
        self.assertEqual(results[0].payout, 100)

    def test_hit_to_bust_ends_round(self):
        game = _deal(card("K"), card("Q"), card("9"), card("7"), card("5"))
        drawn = blackjack.hit(game)
        self.assertEqual(drawn.rank, "5")
        self.assertTrue(game.hand.is_busted)
        self.assertEqual(game.status, STATUS_DEALER_TURN)

        results = blackjack.settle(game)
        self.assertEqual(results[0].result, RESULT_LOSS)
        self.assertEqual(results[0].payout, 0)

    def test_hitting_21_does_not_auto_stand(self):
        game = _deal(card("5"), card("6"), card("9"), card("7"), card("10"))
        blackjack.hit(game)
        self.assertEqual(game.hand.total, 21)
        self.assertEqual(game.status, STATUS_PLAYING)
        self.assertFalse(game.can_double)

    def test_stand_and_dealer_stands_on_17(self):
        game = _deal(card("K"), card("Q"), card("9"), card("8"))
        blackjack.stand(game)
        results = blackjack.settle(game)
        self.assertEqual(len(game.dealer), 2)
        self.assertEqual(results[0].result, RESULT_WIN)
        self.assertEqual(results[0].payout, 200)

    def test_dealer_draws_below_17(self):
        game = _deal(card("K"), card("Q"), card("9"), card("6"), card("8"))
        blackjack.stand(game)
        results = blackjack.settle(game)
        self.assertEqual(game.dealer_total, 23)
        self.assertEqual(results[0].result, RESULT_WIN)

    def test_dealer_natural_beats_three_card_21_as_push(self):
        game = _deal(card("5"), card("6"), card("A"), card("K"), card("10"))
        blackjack.hit(game)
        blackjack.stand(game)
        results = blackjack.settle(game)
        self.assertEqual(results[0].result, RESULT_PUSH)

    def test_double_draws_one_card_and_stands(self):
        game = _deal(card("5"), card("6"), card("9"), card("8"), card("10"))
        self.assertEqual(blackjack.ensure_can_double(game), 100)
        blackjack.double(game)

        self.assertEqual(game.hand.bet, 200)
        self.assertTrue(game.hand.doubled)
        self.assertEqual(len(game.hand.cards), 3)
        self.assertEqual(game.status, STATUS_DEALER_TURN)

        results = blackjack.settle(game)
        self.assertEqual(results[0].payout, 400)

    def test_double_after_hit_is_illegal(self):
        game = _deal(card("2"), card("3"), card("9"), card("8"), card("4"))
        blackjack.hit(game)
        with self.assertRaises(IllegalAction):
            blackjack.ensure_can_double(game)

    def test_split_plays_two_hands(self):
        game = _deal(
            card("8"), card("8", "hearts"), card("9"), card("8", "diamonds"),
            card("3", "clubs"), card("10", "clubs"),
        )
        self.assertEqual(blackjack.ensure_can_split(game), 100)
        blackjack.split(game)

        self.assertTrue(game.has_split)
        self.assertEqual(len(game.hands), 2)
        self.assertEqual(game.hands[0].total, 11)
        self.assertEqual(game.hands[1].total, 18)
        self.assertTrue(game.can_double)
        self.assertFalse(game.can_split)
        with self.assertRaises(IllegalAction):
            blackjack.ensure_can_split(game)

        blackjack.stand(game)
        self.assertEqual(game.current_hand, 1)
        self.assertTrue(game.can_double)
        self.assertEqual(game.status, STATUS_PLAYING)

        blackjack.stand(game)
        results = blackjack.settle(game)
        self.assertEqual([r.result for r in results], [RESULT_LOSS, RESULT_WIN])
        total = sum(r.payout for r in results)
        self.assertEqual(total, 200)
        self.assertEqual(blackjack.round_result(game.total_staked, total), RESULT_PUSH)

    def test_split_needs_matching_ranks(self):
        game = _deal(card("8"), card("9", "hearts"), card("9"), card("7"))
        with self.assertRaises(IllegalAction):
            blackjack.ensure_can_split(game)

    def test_actions_after_round_are_illegal(self):
        game = _deal(card("K"), card("Q"), card("9"), card("8"))
        blackjack.stand(game)
        with self.assertRaises(IllegalAction):
            blackjack.hit(game)

    def test_round_result(self):
        self.assertEqual(blackjack.round_result(100, 250), RESULT_WIN)
        self.assertEqual(blackjack.round_result(200, 200), RESULT_PUSH)
        self.assertEqual(blackjack.round_result(200, 0), RESULT_LOSS)


class BlackjackPersistenceTests(unittest.TestCase):
    def test_round_trip(self):
        game = _deal(card("8"), card("8", "hearts"), card("9"), card("7"))
        restored = BlackjackGame.from_dict(game.to_dict(), version=2)
        self.assertEqual(restored.hands[0].cards, game.hands[0].cards)
        self.assertEqual(restored.deck, game.deck)
        self.assertEqual(restored.version, 2)

    def test_duplicate_card_is_corruption(self):
        data = _deal(card("8"), card("8", "hearts"), card("9"), card("7")).to_dict()
        data["deck"][0] = data["dealer"][0]
        with self.assertRaises(CorruptedState):
            BlackjackGame.from_dict(data)

    def test_unknown_status_is_corruption(self):
        data = _deal(card("8"), card("8", "hearts"), card("9"), card("7")).to_dict()
        data["status"] = "finished"
        with self.assertRaises(CorruptedState):
            BlackjackGame.from_dict(data)


if __name__ == "__main__":
    unittest.main()
