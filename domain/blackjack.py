"""
Blackjack round rules.

A single shuffled deck per round; the dealer stands on 17. Split is allowed
once, on the opening pair, and each split hand may still be doubled. All
functions mutate the `BlackjackGame` they are given; debiting the extra stake
for a double or split is the caller's job and must happen between the
`ensure_can_*` check and the action itself.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List

from .errors import IllegalAction
from .models import (
    RANKS,
    RESULT_BLACKJACK,
    RESULT_LOSS,
    RESULT_PUSH,
    RESULT_WIN,
    STATUS_DEALER_TURN,
    STATUS_FINISHED,
    STATUS_PLAYING,
    SUITS,
    BlackjackGame,
    Card,
    Hand,
    hand_total,
)

DEALER_STANDS_ON = 17
BLACKJACK_PAYS = 2.5
WIN_PAYS = 2


@dataclass(frozen=True)
class HandResult:
    index: int
    cards: List[Card]
    total: int
    bet: int
    result: str
    payout: int


def new_deck(rng) -> List[Card]:
    deck = [Card(suit=suit, rank=rank) for suit in SUITS for rank in RANKS]
    rng.shuffle(deck)
    return deck


def deal(owner: str, wager_id: str, bet: int, rng) -> BlackjackGame:
    deck = new_deck(rng)
    player = [deck.pop(), deck.pop()]
    dealer = [deck.pop(), deck.pop()]
    hand = Hand(cards=player, bet=bet)

    game = BlackjackGame(
        owner=owner,
        wager_id=wager_id,
        bet=bet,
        deck=deck,
        hands=[hand],
        dealer=dealer,
        can_double=True,
        can_split=player[0].rank == player[1].rank,
    )
    if hand.is_blackjack:
        _to_dealer_turn(game)
    return game


def _draw(game: BlackjackGame) -> Card:
    return game.deck.pop()


def _require_playing(game: BlackjackGame, action: str) -> None:
    if game.status != STATUS_PLAYING:
        raise IllegalAction(f"Cannot {action} in current game state")


def _to_dealer_turn(game: BlackjackGame) -> None:
    game.status = STATUS_DEALER_TURN
    game.can_double = False
    game.can_split = False


def _advance(game: BlackjackGame) -> None:
    """Move to the next split hand, or hand over to the dealer."""

    if game.current_hand + 1 < len(game.hands):
        game.current_hand += 1
        game.can_double = True
        game.can_split = False
    else:
        _to_dealer_turn(game)


def hit(game: BlackjackGame) -> Card:
    _require_playing(game, "hit")
    card = _draw(game)
    game.hand.cards.append(card)
    game.can_double = False
    game.can_split = False
    if game.hand.is_busted:
        _advance(game)
    return card


def stand(game: BlackjackGame) -> None:
    _require_playing(game, "stand")
    _advance(game)


def ensure_can_double(game: BlackjackGame) -> int:
    """Return the extra stake a double needs, or raise IllegalAction."""

    _require_playing(game, "double")
    if not game.can_double or len(game.hand.cards) != 2:
        raise IllegalAction("Cannot double in current game state")
    return game.hand.bet


def double(game: BlackjackGame) -> Card:
    ensure_can_double(game)
    hand = game.hand
    hand.bet *= 2
    hand.doubled = True
    card = _draw(game)
    hand.cards.append(card)
    _advance(game)
    return card


def ensure_can_split(game: BlackjackGame) -> int:
    """Return the extra stake a split needs, or raise IllegalAction."""

    _require_playing(game, "split")
    hand = game.hand
    if (
        not game.can_split
        or game.has_split
        or game.current_hand != 0
        or len(hand.cards) != 2
        or hand.cards[0].rank != hand.cards[1].rank
    ):
        raise IllegalAction("Cannot split in current game state")
    return hand.bet


def split(game: BlackjackGame) -> None:
    ensure_can_split(game)
    first, second = game.hand.cards
    bet = game.hand.bet
    game.hands = [
        Hand(cards=[first, _draw(game)], bet=bet),
        Hand(cards=[second, _draw(game)], bet=bet),
    ]
    game.has_split = True
    game.current_hand = 0
    game.can_split = False
    game.can_double = True


def play_dealer(game: BlackjackGame) -> None:
    while hand_total(game.dealer) < DEALER_STANDS_ON:
        game.dealer.append(_draw(game))


def settle(game: BlackjackGame) -> List[HandResult]:
    """Play out the dealer and settle every player hand independently."""

    if game.status != STATUS_DEALER_TURN:
        raise IllegalAction("Round is not ready to be settled")

    play_dealer(game)
    dealer_total = hand_total(game.dealer)
    dealer_blackjack = len(game.dealer) == 2 and dealer_total == 21
    dealer_busted = dealer_total > 21

    results = []
    for index, hand in enumerate(game.hands):
        if hand.is_busted:
            result, payout = RESULT_LOSS, 0
        elif hand.is_blackjack and not dealer_blackjack:
            result, payout = RESULT_BLACKJACK, int(math.floor(hand.bet * BLACKJACK_PAYS))
        elif dealer_busted or hand.total > dealer_total:
            result, payout = RESULT_WIN, hand.bet * WIN_PAYS
        elif hand.total == dealer_total:
            result, payout = RESULT_PUSH, hand.bet
        else:
            result, payout = RESULT_LOSS, 0

        results.append(
            HandResult(
                index=index,
                cards=list(hand.cards),
                total=hand.total,
                bet=hand.bet,
                result=result,
                payout=payout,
            )
        )

    game.status = STATUS_FINISHED
    return results


def round_result(staked: int, total_payout: int) -> str:
    """Single history result for the whole round."""

    if total_payout > staked:
        return RESULT_WIN
    if total_payout == staked:
        return RESULT_PUSH
    return RESULT_LOSS
