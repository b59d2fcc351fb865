from __future__ import annotations

import json
import logging
from typing import Any, Dict, Union

from domain.errors import CorruptedState
from domain.models import GAME_BLACKJACK, GAME_MINES, BlackjackGame, MinesGame
from domain.repositories import GameSession

logger = logging.getLogger(__name__)

SESSION_TYPES = {
    GAME_MINES: MinesGame,
    GAME_BLACKJACK: BlackjackGame,
}


def encode_session(session: GameSession) -> str:
    return json.dumps(session.to_dict(), separators=(",", ":"))


def decode_session(
    owner: str,
    game: str,
    raw: Union[str, Dict[str, Any]],
    version: int,
) -> GameSession:
    """Turn a stored row back into a session, or raise `CorruptedState`."""

    session_type = SESSION_TYPES.get(game)
    if session_type is None:
        raise CorruptedState(detail=f"unknown game {game!r}")

    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise CorruptedState(detail=f"state is not JSON: {exc}") from exc
    else:
        data = raw
    if not isinstance(data, dict):
        raise CorruptedState(detail="state is not an object")

    session = session_type.from_dict(data, version=version)
    if session.owner != owner:
        raise CorruptedState(detail="state belongs to another user")
    return session


def log_discarded(owner: str, game: str, exc: CorruptedState) -> None:
    logger.warning("Discarded corrupted %s session for user %s: %s", game, owner, exc.detail)
