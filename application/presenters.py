"""
Wire payloads shared by every transport.

HTTP routes and WebSocket frames both render results through these
functions, so the two surfaces return identical shapes for the same
outcome. Keys are camelCase because that is what the web client speaks.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from domain.mines import mine_positions
from domain.models import (
    STATUS_PLAYING,
    BlackjackGame,
    Card,
    GameHistoryEntry,
    Hand,
    MinesGame,
    User,
    hand_total,
)

from .services import BlackjackStep, DiceResult, KenoResult, LimboResult, MinesStep


def _outcome_word(won: bool) -> str:
    return "win" if won else "lose"


def dice_payload(result: DiceResult) -> Dict[str, Any]:
    o = result.outcome
    return {
        "won": o.won,
        "result": _outcome_word(o.won),
        "roll": round(o.roll, 2),
        "betTarget": o.target,
        "betDirection": o.direction,
        "multiplier": round(o.multiplier, 4),
        "payout": o.payout,
        "newBalance": result.balance,
    }


def limbo_payload(result: LimboResult) -> Dict[str, Any]:
    o = result.outcome
    return {
        "won": o.won,
        "result": _outcome_word(o.won),
        "crashPoint": o.crash_point,
        "targetMultiplier": o.target,
        "payout": o.payout,
        "newBalance": result.balance,
    }


def keno_payload(result: KenoResult) -> Dict[str, Any]:
    o = result.outcome
    return {
        "won": o.won,
        "selectedNumbers": o.picks,
        "drawnNumbers": o.drawn,
        "hits": o.hits,
        "risk": o.risk,
        "multiplier": o.multiplier,
        "payout": o.payout,
        "newBalance": result.balance,
    }


# ---------------------------------------------------------------------------
# Mines
# ---------------------------------------------------------------------------


def _mines_board(game: MinesGame) -> Dict[str, Any]:
    return {
        "gameId": game.game_id,
        "betAmount": game.bet,
        "minesCount": game.mine_count,
        "encodedMines": game.layout_token,
        "revealedTiles": list(game.revealed),
        "currentMultiplier": round(game.multiplier, 4),
    }


def mines_active_payload(game: Optional[MinesGame]) -> Dict[str, Any]:
    if game is None:
        return {"hasActiveGame": False}
    payload = _mines_board(game)
    payload["hasActiveGame"] = True
    return payload


def mines_started_payload(step: MinesStep) -> Dict[str, Any]:
    payload = _mines_board(step.game)
    payload["newBalance"] = step.balance
    return payload


def _mines_reveal_layout(game: MinesGame) -> Dict[str, Any]:
    # Only sent once the round is over.
    return {"minePositions": mine_positions(game), "layoutKey": game.layout_key}


def mines_reveal_payload(step: MinesStep) -> Dict[str, Any]:
    o = step.outcome
    game = step.game
    revealed = list(game.revealed)
    if o.hit_mine:
        revealed.append(o.position)

    payload: Dict[str, Any] = {
        "gameId": game.game_id,
        "position": o.position,
        "hitMine": o.hit_mine,
        "gameOver": o.finished,
        "revealedTiles": revealed,
        "currentMultiplier": round(o.multiplier, 4),
    }
    if o.finished:
        payload.update(_mines_reveal_layout(game))
        payload["payout"] = o.payout
        payload["newBalance"] = step.balance
        payload["autoCashout"] = not o.hit_mine
    return payload


def mines_cashout_payload(step: MinesStep) -> Dict[str, Any]:
    o = step.outcome
    payload = {
        "success": True,
        "gameId": step.game.game_id,
        "multiplier": round(o.multiplier, 4),
        "payout": o.payout,
        "revealedTiles": list(step.game.revealed),
        "newBalance": step.balance,
    }
    payload.update(_mines_reveal_layout(step.game))
    return payload


# ---------------------------------------------------------------------------
# Blackjack
# ---------------------------------------------------------------------------


def _cards(cards: List[Card]) -> List[Dict[str, Any]]:
    return [c.to_dict() for c in cards]


def _hand_view(hand: Hand) -> Dict[str, Any]:
    return {
        "cards": _cards(hand.cards),
        "total": hand.total,
        "bet": hand.bet,
        "doubled": hand.doubled,
        "isBusted": hand.is_busted,
        "isBlackjack": hand.is_blackjack,
    }


def _dealer_view(game: BlackjackGame) -> Dict[str, Any]:
    if game.status == STATUS_PLAYING:
        # Hole card stays face down until the player is done.
        visible = game.dealer[:1]
        return {"cards": _cards(visible), "total": hand_total(visible), "hidden": 1}
    return {"cards": _cards(game.dealer), "total": game.dealer_total, "hidden": 0}


def blackjack_game_view(game: BlackjackGame) -> Dict[str, Any]:
    return {
        "gameId": game.game_id,
        "betAmount": game.total_staked,
        "playerHands": [_hand_view(h) for h in game.hands],
        "currentHandIndex": game.current_hand,
        "dealerHand": _dealer_view(game),
        "gameStatus": game.status,
        "canDouble": game.can_double,
        "canSplit": game.can_split,
        "hasSplit": game.has_split,
    }


def blackjack_active_payload(game: Optional[BlackjackGame]) -> Dict[str, Any]:
    if game is None:
        return {"hasActiveGame": False}
    return {"hasActiveGame": True, "game": blackjack_game_view(game)}


def blackjack_payload(step: BlackjackStep) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "game": blackjack_game_view(step.game),
        "gameOver": step.finished,
    }
    if step.finished:
        payload["results"] = [
            {"handIndex": r.index, "total": r.total, "bet": r.bet, "result": r.result, "payout": r.payout}
            for r in step.results
        ]
        payload["totalPayout"] = step.total_payout
    if step.balance is not None:
        payload["newBalance"] = step.balance
    return payload


# ---------------------------------------------------------------------------
# Users / history / errors
# ---------------------------------------------------------------------------


def user_payload(user: User) -> Dict[str, Any]:
    return {"id": user.id, "displayName": user.display_name, "points": user.balance}


def history_payload(entries: List[GameHistoryEntry]) -> List[Dict[str, Any]]:
    return [
        {
            "gameType": e.game,
            "betAmount": e.bet,
            "payout": e.payout,
            "result": e.result,
            "gameData": e.detail,
            "createdAt": e.created_at.isoformat(),
        }
        for e in entries
    ]


def error_payload(exc) -> Dict[str, Any]:
    return {"error": exc.message, "code": exc.code}
