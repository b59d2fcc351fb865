from __future__ import annotations

from typing import Optional


class WagerError(Exception):
    """
    Base class for every error the wager engine reports to a caller.

    These are all recoverable: the transport shows `message` to the user,
    who can retry or start over. `status` is the HTTP status the request/
    response transport answers with; `code` is a stable machine name used by
    the persistent-connection transport.
    """

    code = "wager_error"
    status = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(WagerError):
    """Malformed or out-of-range input, rejected before any balance mutation."""

    code = "validation_error"


class InsufficientFunds(WagerError):
    code = "insufficient_funds"

    def __init__(self, message: str = "Insufficient points") -> None:
        super().__init__(message)


class UserNotFound(WagerError):
    code = "user_not_found"
    status = 404

    def __init__(self, user_id: str) -> None:
        super().__init__("User not found")
        self.user_id = user_id


class SessionConflict(WagerError):
    """A game is already active, or it changed underneath this request."""

    code = "session_conflict"
    status = 409


class SessionNotFound(WagerError):
    code = "session_not_found"
    status = 404

    def __init__(self, message: str = "No active game found") -> None:
        super().__init__(message)


class IllegalAction(WagerError):
    """The action is not permitted by the current game state."""

    code = "illegal_action"


class CorruptedState(WagerError):
    """
    A persisted session failed structural validation.

    By the time this is raised the session has already been discarded; the
    user has to start a new game.
    """

    code = "corrupted_state"
    status = 409

    def __init__(
        self,
        message: str = "Game data corrupted. Please start a new game.",
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.detail = detail


class SettlementFault(Exception):
    """
    A bet was debited but the round could not be settled.

    Not a user error: the wager stays open in the journal and is picked up
    by the reconciliation job.
    """

    code = "settlement_fault"
    status = 500

    def __init__(self, wager_id: str) -> None:
        super().__init__(f"Wager {wager_id} was debited but could not be settled")
        self.wager_id = wager_id
        self.message = "Something went wrong settling this round. It will be refunded."


class PaytableError(ValueError):
    """Invalid payout configuration, raised at load time."""


class PointsMirrorError(Exception):
    """The external points system could not be reached or refused a change."""
