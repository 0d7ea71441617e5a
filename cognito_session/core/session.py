"""The current-user slot, the table of paused sign-in attempts, and per-caller sessions.

- SessionContext: who is signed in, plus parked challenge attempts (expire after ``challenge_ttl``)
- bind_session / active_session: scope a context to the running task
- SessionStore: opaque session id -> SessionContext for multi-client servers
"""

from __future__ import annotations

import logging
import secrets
import time
from collections import OrderedDict
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from cognito_session.core.models import UserHandle
from cognito_session.exceptions import ChallengeExpiredError

logger = logging.getLogger("cognito_session.session")

# Cognito discards a challenge Session after three minutes.
DEFAULT_CHALLENGE_TTL = 180.0
DEFAULT_MAX_PENDING = 32

Clock = Callable[[], float]


class SessionContext:
    """Single owner of "who is signed in right now" for one caller.

    ``set_user`` is called on successful sign-in, challenge completion or
    restore; ``clear`` on sign-out. Users paused on a challenge are parked
    under a random attempt id until a resuming call claims them or the
    attempt ages past ``challenge_ttl``.
    """

    def __init__(
        self,
        *,
        challenge_ttl: float = DEFAULT_CHALLENGE_TTL,
        max_pending: int = DEFAULT_MAX_PENDING,
        clock: Clock = time.monotonic,
    ) -> None:
        self._user: UserHandle | None = None
        self._pending: OrderedDict[str, tuple[float, UserHandle]] = OrderedDict()
        self._challenge_ttl = challenge_ttl
        self._max_pending = max_pending
        self._clock = clock

    @property
    def user(self) -> UserHandle | None:
        return self._user

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def is_empty(self) -> bool:
        return self._user is None and not self._pending

    def set_user(self, user: UserHandle) -> None:
        self._user = user

    def clear(self) -> None:
        self._user = None
        self._pending.clear()

    def _evict_expired(self) -> None:
        cutoff = self._clock() - self._challenge_ttl
        # Insertion order is park order, so the oldest entries come first.
        while self._pending:
            attempt_id, (parked_at, _) = next(iter(self._pending.items()))
            if parked_at > cutoff:
                break
            del self._pending[attempt_id]
            logger.debug("Challenge attempt %s expired", attempt_id[:6])

    def park(self, user: UserHandle) -> str:
        """Hold a challenged user and return the attempt id that resumes it."""
        self._evict_expired()
        while len(self._pending) >= self._max_pending:
            dropped, _ = self._pending.popitem(last=False)
            logger.info("Dropping oldest challenge attempt %s", dropped[:6])
        attempt_id = secrets.token_urlsafe(16)
        self._pending[attempt_id] = (self._clock(), user)
        return attempt_id

    def claim(self, attempt_id: str) -> UserHandle:
        """Remove and return a parked user; each attempt id resolves once."""
        self._evict_expired()
        try:
            _, user = self._pending.pop(attempt_id)
        except KeyError:
            logger.info("Challenge attempt %s is unknown, consumed or expired", attempt_id[:6])
            raise ChallengeExpiredError(
                "Challenge has already been used or has expired; sign in again."
            ) from None
        return user


# ---------------------------------------------------------------------------
# Task-scoped binding
# ---------------------------------------------------------------------------

_bound_session: ContextVar[SessionContext | None] = ContextVar(
    "cognito_session_bound", default=None
)


def active_session(default: SessionContext) -> SessionContext:
    """Return the context bound to the running task, else ``default``."""
    bound = _bound_session.get()
    return bound if bound is not None else default


@contextmanager
def bind_session(ctx: SessionContext) -> Iterator[SessionContext]:
    """Route every provider ``session`` lookup in this task to ``ctx``."""
    token = _bound_session.set(ctx)
    try:
        yield ctx
    finally:
        _bound_session.reset(token)


# ---------------------------------------------------------------------------
# SessionStore
# ---------------------------------------------------------------------------


class SessionStore:
    """Session contexts keyed by an opaque id handed to each HTTP caller.

    Contexts idle for longer than ``idle_ttl`` are dropped, and the store
    never holds more than ``max_sessions`` (least recently used go first).
    """

    def __init__(
        self,
        *,
        idle_ttl: float = 3600.0,
        max_sessions: int = 10_000,
        challenge_ttl: float = DEFAULT_CHALLENGE_TTL,
        max_pending: int = DEFAULT_MAX_PENDING,
        clock: Clock = time.monotonic,
    ) -> None:
        self._entries: OrderedDict[str, tuple[float, SessionContext]] = OrderedDict()
        self._idle_ttl = idle_ttl
        self._max_sessions = max_sessions
        self._challenge_ttl = challenge_ttl
        self._max_pending = max_pending
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def _evict_idle(self) -> None:
        cutoff = self._clock() - self._idle_ttl
        while self._entries:
            session_id, (seen_at, _) = next(iter(self._entries.items()))
            if seen_at > cutoff:
                break
            del self._entries[session_id]

    def get(self, session_id: str | None) -> SessionContext | None:
        """Look up a live context and mark it as recently used."""
        self._evict_idle()
        if not session_id or session_id not in self._entries:
            return None
        _, ctx = self._entries.pop(session_id)
        self._entries[session_id] = (self._clock(), ctx)
        return ctx

    def create(self) -> tuple[str, SessionContext]:
        self._evict_idle()
        while len(self._entries) >= self._max_sessions:
            self._entries.popitem(last=False)
        session_id = secrets.token_urlsafe(32)
        ctx = SessionContext(
            challenge_ttl=self._challenge_ttl,
            max_pending=self._max_pending,
            clock=self._clock,
        )
        self._entries[session_id] = (self._clock(), ctx)
        return session_id, ctx

    def discard(self, session_id: str | None) -> None:
        if session_id:
            self._entries.pop(session_id, None)
