"""
Request bodies shared by the HTTP routes and the WebSocket messages.

Fields are snake_case in Python and camelCase on the wire. The HTTP
variants add `userId`; over WebSocket the user comes from the `auth`
message instead.
"""

from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class DicePlay(Schema):
    bet_amount: int
    target_number: float
    direction: str


class LimboPlay(Schema):
    bet_amount: int
    target_multiplier: float


class KenoPlay(Schema):
    bet_amount: int
    selected_numbers: List[int]
    risk: str


class MinesStart(Schema):
    bet_amount: int
    mines_count: int


class MinesReveal(Schema):
    position: int


class BlackjackStart(Schema):
    bet_amount: int


class NoBody(Schema):
    pass


class Auth(Schema):
    user_id: str


# HTTP bodies carry the acting user alongside the game input.


class DicePlayRequest(Auth, DicePlay):
    pass


class LimboPlayRequest(Auth, LimboPlay):
    pass


class KenoPlayRequest(Auth, KenoPlay):
    pass


class MinesStartRequest(Auth, MinesStart):
    pass


class MinesRevealRequest(Auth, MinesReveal):
    pass


class BlackjackStartRequest(Auth, BlackjackStart):
    pass


class CreateUser(Schema):
    user_id: str
    display_name: str = ""


class PointsChange(Schema):
    points: int
    action: Literal["add", "remove", "set"]


class LinkKick(Schema):
    username: str


class LinkDiscord(Schema):
    discord_id: str


def describe_validation_error(exc) -> str:
    """
    First problem in a pydantic (or FastAPI request) validation error,
    phrased for the user.
    """

    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    if location:
        return f"Invalid request: {location}: {first.get('msg', 'invalid value')}"
    return f"Invalid request: {first.get('msg', 'invalid value')}"
