"""Tests for session records, challenge tokens and credentials."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from cognito_session.core.models import (
    AuthOutcome,
    AuthStatus,
    ChallengeContext,
    ChallengeKind,
    ChallengeState,
    Credentials,
    SessionRecord,
    UserHandle,
)
from cognito_session.core.session import (
    SessionContext,
    SessionStore,
    active_session,
    bind_session,
)
from cognito_session.exceptions import ChallengeExpiredError, InvalidChallengeStateError


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _user() -> UserHandle:
    return UserHandle(username="u", pool_id="p", client_id="c")


def _state(**overrides) -> ChallengeState:
    context = {"attempt_id": "abc123", "username": "testuser"}
    context.update(overrides)
    return ChallengeState(
        name=ChallengeKind.NEW_PASSWORD_REQUIRED, context=ChallengeContext(**context)
    )


# ---------------------------------------------------------------------------
# SessionRecord
# ---------------------------------------------------------------------------


class TestSessionRecord:
    def test_camel_case_aliases(self):
        r = SessionRecord.model_validate({"poolId": "us-east-1_TEST", "clientId": "TEST"})
        assert r.pool_id == "us-east-1_TEST"
        assert r.client_id == "TEST"
        assert r.to_dict() == {"poolId": "us-east-1_TEST", "clientId": "TEST"}

    def test_value_equality(self):
        a = SessionRecord(pool_id="p", client_id="c")
        b = SessionRecord.model_validate({"poolId": "p", "clientId": "c"})
        assert a == b

    def test_frozen(self):
        r = SessionRecord(pool_id="p", client_id="c")
        with pytest.raises(ValidationError):
            r.pool_id = "other"

    def test_missing_field(self):
        with pytest.raises(ValidationError):
            SessionRecord.model_validate({"poolId": "p"})


# ---------------------------------------------------------------------------
# ChallengeKind / ChallengeState
# ---------------------------------------------------------------------------


class TestChallengeKind:
    def test_value(self):
        assert ChallengeKind.NEW_PASSWORD_REQUIRED.value == "newPasswordRequired"

    def test_from_provider(self):
        kind = ChallengeKind.from_provider("NEW_PASSWORD_REQUIRED")
        assert kind is ChallengeKind.NEW_PASSWORD_REQUIRED

    def test_from_provider_unknown(self):
        assert ChallengeKind.from_provider("SMS_MFA") is None
        assert ChallengeKind.from_provider(None) is None
        assert ChallengeKind.from_provider("") is None


class TestChallengeState:
    def test_token_round_trip(self):
        state = _state(required_attributes=["email"])
        assert ChallengeState.from_token(state.to_token()) == state

    def test_token_is_url_safe(self):
        token = _state().to_token()
        assert "=" not in token
        assert "+" not in token
        assert "/" not in token

    def test_token_carries_no_secrets(self):
        state = _state()
        payload = json.loads(state.model_dump_json(by_alias=True))
        assert payload == {
            "name": "newPasswordRequired",
            "context": {"attemptId": "abc123", "username": "testuser", "requiredAttributes": []},
        }

    def test_malformed_token(self):
        with pytest.raises(InvalidChallengeStateError):
            ChallengeState.from_token("%%%")

    def test_unknown_name_in_token(self):
        import base64

        raw = json.dumps({"name": "refresh", "context": {"attemptId": "a", "username": "u"}})
        token = base64.urlsafe_b64encode(raw.encode()).decode()
        with pytest.raises(InvalidChallengeStateError):
            ChallengeState.from_token(token)

    def test_immutable(self):
        state = _state()
        with pytest.raises(ValidationError):
            state.name = ChallengeKind.NEW_PASSWORD_REQUIRED


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class TestCredentials:
    def test_fresh(self):
        creds = Credentials.parse({"username": "u", "password": "p"})
        assert creds.username == "u"
        assert creds.password.get_secret_value() == "p"
        assert creds.state is None

    def test_password_hidden_in_repr(self):
        creds = Credentials(username="u", password="hunter2")
        assert "hunter2" not in repr(creds)

    def test_resume_with_state_model(self):
        state = _state()
        creds = Credentials.parse({"password": "p", "state": state})
        assert creds.state == state
        assert creds.username is None

    def test_resume_with_token(self):
        state = _state()
        creds = Credentials.parse({"password": "p", "state": state.to_token()})
        assert creds.state == state

    def test_username_required_without_state(self):
        with pytest.raises(ValidationError):
            Credentials.parse({"password": "p"})

    def test_password_required(self):
        with pytest.raises(ValidationError):
            Credentials.parse({"username": "u"})

    def test_passthrough(self):
        creds = Credentials(username="u", password="p")
        assert Credentials.parse(creds) is creds


# ---------------------------------------------------------------------------
# UserHandle / AuthOutcome
# ---------------------------------------------------------------------------


class TestUserHandle:
    def test_has_challenge(self):
        user = UserHandle(username="u", pool_id="p", client_id="c")
        assert user.has_challenge is False
        user.challenge_name = "NEW_PASSWORD_REQUIRED"
        assert user.has_challenge is True


class TestAuthOutcome:
    def test_defaults(self):
        outcome = AuthOutcome(status=AuthStatus.FAILED, error="nope")
        assert outcome.authenticated is False
        assert outcome.record is None
        assert outcome.state is None


# ---------------------------------------------------------------------------
# SessionContext
# ---------------------------------------------------------------------------


class TestSessionContext:
    def test_set_and_clear_user(self):
        ctx = SessionContext()
        user = UserHandle(username="u", pool_id="p", client_id="c")
        ctx.set_user(user)
        assert ctx.user is user
        ctx.clear()
        assert ctx.user is None

    def test_park_and_claim_once(self):
        ctx = SessionContext()
        user = UserHandle(username="u", pool_id="p", client_id="c")
        attempt_id = ctx.park(user)
        assert ctx.pending_count == 1
        assert ctx.claim(attempt_id) is user
        assert ctx.pending_count == 0
        with pytest.raises(ChallengeExpiredError):
            ctx.claim(attempt_id)

    def test_attempt_ids_are_unique(self):
        ctx = SessionContext()
        user = UserHandle(username="u", pool_id="p", client_id="c")
        assert ctx.park(user) != ctx.park(user)

    def test_clear_drops_pending(self):
        ctx = SessionContext()
        attempt_id = ctx.park(UserHandle(username="u", pool_id="p", client_id="c"))
        ctx.clear()
        with pytest.raises(ChallengeExpiredError):
            ctx.claim(attempt_id)

    def test_expired_attempt_cannot_be_claimed(self):
        clock = FakeClock()
        ctx = SessionContext(challenge_ttl=180.0, clock=clock)
        attempt_id = ctx.park(_user())
        clock.advance(181)
        with pytest.raises(ChallengeExpiredError):
            ctx.claim(attempt_id)
        assert ctx.pending_count == 0

    def test_attempt_within_ttl_is_claimable(self):
        clock = FakeClock()
        ctx = SessionContext(challenge_ttl=180.0, clock=clock)
        attempt_id = ctx.park(_user())
        clock.advance(179)
        assert ctx.claim(attempt_id).username == "u"

    def test_abandoned_attempts_are_reclaimed_on_park(self):
        clock = FakeClock()
        ctx = SessionContext(challenge_ttl=180.0, max_pending=1000, clock=clock)
        for _ in range(500):
            ctx.park(_user())
        assert ctx.pending_count == 500
        clock.advance(200)
        ctx.park(_user())
        assert ctx.pending_count == 1

    def test_pending_table_is_capped(self):
        ctx = SessionContext(max_pending=3)
        first = ctx.park(_user())
        for _ in range(10):
            ctx.park(_user())
        assert ctx.pending_count == 3
        with pytest.raises(ChallengeExpiredError):
            ctx.claim(first)


# ---------------------------------------------------------------------------
# Task-scoped binding
# ---------------------------------------------------------------------------


class TestBindSession:
    def test_bound_context_wins(self):
        default, bound = SessionContext(), SessionContext()
        assert active_session(default) is default
        with bind_session(bound):
            assert active_session(default) is bound
        assert active_session(default) is default

    def test_provider_session_follows_binding(self, provider):
        own = provider.session
        caller = SessionContext()
        with bind_session(caller):
            assert provider.session is caller
        assert provider.session is own


# ---------------------------------------------------------------------------
# SessionStore
# ---------------------------------------------------------------------------


class TestSessionStore:
    def test_create_and_get(self):
        store = SessionStore()
        session_id, ctx = store.create()
        assert store.get(session_id) is ctx
        assert store.get("unknown") is None
        assert store.get(None) is None

    def test_discard(self):
        store = SessionStore()
        session_id, _ = store.create()
        store.discard(session_id)
        assert store.get(session_id) is None
        assert len(store) == 0

    def test_idle_sessions_expire(self):
        clock = FakeClock()
        store = SessionStore(idle_ttl=60.0, clock=clock)
        stale, _ = store.create()
        clock.advance(30)
        fresh, _ = store.create()
        clock.advance(40)
        assert store.get(stale) is None
        assert store.get(fresh) is not None

    def test_get_refreshes_idle_timer(self):
        clock = FakeClock()
        store = SessionStore(idle_ttl=60.0, clock=clock)
        session_id, _ = store.create()
        clock.advance(50)
        assert store.get(session_id) is not None
        clock.advance(50)
        assert store.get(session_id) is not None

    def test_least_recently_used_evicted_at_capacity(self):
        store = SessionStore(max_sessions=2)
        first, _ = store.create()
        second, _ = store.create()
        store.get(first)
        store.create()
        assert len(store) == 2
        assert store.get(second) is None
        assert store.get(first) is not None

    def test_contexts_inherit_challenge_limits(self):
        clock = FakeClock()
        store = SessionStore(challenge_ttl=10.0, clock=clock)
        _, ctx = store.create()
        attempt_id = ctx.park(_user())
        clock.advance(11)
        with pytest.raises(ChallengeExpiredError):
            ctx.claim(attempt_id)
