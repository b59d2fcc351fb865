import random
from datetime import datetime

from domain.errors import CorruptedState, PointsMirrorError, SessionConflict, SessionNotFound
from domain.models import WAGER_OPEN, Card, User, Wager
from domain.repositories import (
    HistoryRepository,
    IdentityRepository,
    PointsMirror,
    SessionRepository,
    UserRepository,
    WagerJournal,
)
from infrastructure.db.session_state import decode_session, encode_session


class InMemoryUserRepository(UserRepository):
    def __init__(self):
        self.users = {}

    def get_user(self, user_id: str):
        user = self.users.get(user_id)
        if user is None:
            return None
        return User(id=user.id, display_name=user.display_name, balance=user.balance)

    def get_all_users(self):
        return [self.get_user(uid) for uid in sorted(self.users)]

    def add_user(self, user: User) -> None:
        self.users.setdefault(user.id, User(id=user.id, display_name=user.display_name, balance=user.balance))

    def update_balance(self, user_id: str, delta: int):
        user = self.users.get(user_id)
        if user is None or user.balance + delta < 0:
            return None
        user.balance += delta
        return user.balance

    def set_balance(self, user_id: str, balance: int):
        user = self.users.get(user_id)
        if user is None:
            return None
        user.balance = max(0, balance)
        return user.balance


class InMemoryIdentityRepository(IdentityRepository):
    def __init__(self, user_repo: UserRepository):
        self.user_repo = user_repo
        self.mapping = {}

    def find_user_by_external(self, provider: str, provider_user_id: str):
        user_id = self.mapping.get((provider, provider_user_id))
        if not user_id:
            return None
        return self.user_repo.get_user(user_id)

    def set_external_identity(self, provider: str, provider_user_id: str, user_id: str) -> None:
        for key, uid in list(self.mapping.items()):
            if key[0] == provider and uid == user_id:
                del self.mapping[key]
        self.mapping[(provider, provider_user_id)] = user_id

    def clear_external_identity(self, provider: str, provider_user_id: str) -> None:
        self.mapping.pop((provider, provider_user_id), None)

    def get_external_ids_for_user(self, provider: str, user_id: str):
        return [ext for (prov, ext), uid in self.mapping.items() if prov == provider and uid == user_id]


class InMemorySessionRepository(SessionRepository):
    """Stores sessions as JSON, like the real stores, so nothing is shared by reference."""

    def __init__(self):
        self.rows = {}

    def create(self, session) -> bool:
        key = (session.owner, session.game)
        if key in self.rows:
            return False
        self.rows[key] = (encode_session(session), 1)
        session.version = 1
        return True

    def get(self, owner: str, game: str):
        row = self.rows.get((owner, game))
        if row is None:
            return None
        try:
            return decode_session(owner, game, row[0], row[1])
        except CorruptedState:
            del self.rows[(owner, game)]
            raise

    def save(self, session) -> None:
        key = (session.owner, session.game)
        row = self.rows.get(key)
        if row is None:
            raise SessionNotFound()
        if row[1] != session.version:
            raise SessionConflict("This game changed while your action was processed. Please retry.")
        session.version += 1
        self.rows[key] = (encode_session(session), session.version)

    def delete(self, owner: str, game: str, version=None) -> bool:
        row = self.rows.get((owner, game))
        if row is None or (version is not None and row[1] != version):
            return False
        del self.rows[(owner, game)]
        return True


class InMemoryHistoryRepository(HistoryRepository):
    def __init__(self):
        self.entries = []

    def record(self, entry) -> None:
        self.entries.append(entry)

    def list_for_user(self, owner: str, limit: int = 50):
        return [e for e in reversed(self.entries) if e.owner == owner][:limit]


class InMemoryWagerJournal(WagerJournal):
    def __init__(self):
        self.wagers = {}

    def open(self, wager: Wager) -> None:
        self.wagers[wager.id] = wager

    def get(self, wager_id: str):
        return self.wagers.get(wager_id)

    def add_stake(self, wager_id: str, amount: int) -> None:
        wager = self.wagers.get(wager_id)
        if wager is not None and wager.status == WAGER_OPEN:
            wager.stake += amount

    def close(self, wager_id: str, status: str) -> bool:
        wager = self.wagers.get(wager_id)
        if wager is None or wager.status != WAGER_OPEN:
            return False
        wager.status = status
        return True

    def discard(self, wager_id: str) -> None:
        wager = self.wagers.get(wager_id)
        if wager is not None and wager.status == WAGER_OPEN:
            del self.wagers[wager_id]

    def list_open(self, older_than: datetime):
        return [w for w in self.wagers.values() if w.status == WAGER_OPEN and w.created_at < older_than]

    def open_wagers(self):
        return [w for w in self.wagers.values() if w.status == WAGER_OPEN]


class FakePointsMirror(PointsMirror):
    def __init__(self, points=None):
        self.points = dict(points or {})
        self.failing = False
        self.calls = []

    def _check(self, account):
        if self.failing:
            raise PointsMirrorError("mirror down")
        if account not in self.points:
            raise PointsMirrorError(f"Viewer {account!r} not found")

    def get_points(self, account: str) -> int:
        self._check(account)
        return self.points[account]

    def add_points(self, account: str, points: int) -> None:
        self._check(account)
        self.calls.append(("add", account, points))
        self.points[account] += points

    def remove_points(self, account: str, points: int) -> None:
        self._check(account)
        self.calls.append(("remove", account, points))
        self.points[account] = max(0, self.points[account] - points)

    def set_points(self, account: str, points: int) -> None:
        self._check(account)
        self.calls.append(("set", account, points))
        self.points[account] = points


def card(rank: str, suit: str = "spades") -> Card:
    return Card(suit=suit, rank=rank)


class ScriptedRandom(random.Random):
    """
    Random source with scripted outcomes.

    `values` feed `random()`, `samples` feed `sample()`, and `deck_top`
    lists the cards a shuffled deck will hand out first (in draw order).
    Anything not scripted falls back to a seeded generator.
    """

    def __init__(self, values=(), samples=(), deck_top=()):
        super().__init__(1234)
        self._values = list(values)
        self._samples = [list(s) for s in samples]
        self._deck_top = list(deck_top)

    def getrandbits(self, k):
        # Defined so shuffle()/sample() fallbacks draw bits, not scripted values.
        return super().getrandbits(k)

    def random(self):
        if self._values:
            return self._values.pop(0)
        return super().random()

    def sample(self, population, k, **kwargs):
        if self._samples:
            return self._samples.pop(0)
        return super().sample(population, k, **kwargs)

    def shuffle(self, x):
        super().shuffle(x)
        if self._deck_top:
            wanted = self._deck_top
            rest = [c for c in x if c not in wanted]
            # Draws pop from the end of the pile.
            x[:] = rest + list(reversed(wanted))
            self._deck_top = []
