"""Authentication orchestrator: resumable sign-in on top of a session provider.

Three operations are exposed to a session framework:

* ``authenticate`` -- sign in with ``{username, password}``, or resume a
  paused attempt with ``{password, state}``. Returns a :class:`SessionRecord`.
  Raises :class:`ChallengeRequiredError` (carrying ``state``) when the
  provider wants one more input, and re-raises provider rejections as-is.
* ``restore`` -- confirm a previously saved record still has a live
  provider session; raises :class:`NotAuthenticatedError` otherwise.
* ``invalidate`` -- sign out and hand the record back. Never raises.

State machine::

    Idle --sign_in ok-----------> Authenticated
    Idle --sign_in challenge----> AwaitingChallenge
    AwaitingChallenge --ok------> Authenticated
    AwaitingChallenge --fail----> Idle (token discarded)
    Authenticated --invalidate--> Idle
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Union

from cognito_session.auth_providers.base import SessionProvider
from cognito_session.config import Settings, settings as default_settings
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
from cognito_session.exceptions import (
    ChallengeExpiredError,
    ChallengeRequiredError,
    CognitoSessionError,
    InvalidChallengeStateError,
    NoCurrentUserError,
    NotAuthenticatedError,
    ProviderError,
)

logger = logging.getLogger("cognito_session.orchestrator")
_audit_logger = logging.getLogger("cognito_session.audit")

SessionData = Union[SessionRecord, Mapping[str, Any]]
ChallengeResolver = Callable[[Credentials, ChallengeState], Awaitable[SessionRecord]]


class Authenticator:
    """Drives sign-in, challenge completion, restore and sign-out for one pool/client."""

    def __init__(self, provider: SessionProvider, settings: Settings | None = None) -> None:
        self.provider = provider
        self.settings = settings if settings is not None else default_settings
        self._resolvers: dict[ChallengeKind, ChallengeResolver] = {
            ChallengeKind.NEW_PASSWORD_REQUIRED: self._resolve_new_password,
        }

    # -- configuration read-through ---------------------------------------

    @property
    def pool_id(self) -> str:
        return self.settings.pool_id

    @property
    def client_id(self) -> str:
        return self.settings.client_id

    @property
    def authentication_flow_type(self) -> str:
        return self.settings.authentication_flow_type

    @property
    def user(self) -> UserHandle | None:
        """The provider's current user, set as a side effect of sign-in and restore."""
        return self.provider.session.user

    def _record(self) -> SessionRecord:
        return SessionRecord(pool_id=self.pool_id, client_id=self.client_id)

    # -- authenticate -------------------------------------------------------

    async def authenticate(self, credentials: Credentials | Mapping[str, Any]) -> SessionRecord:
        creds = Credentials.parse(credentials)
        if creds.state is not None:
            return await self._resume(creds, creds.state)

        username = creds.username or ""
        try:
            user = await self.provider.sign_in(username, creds.password.get_secret_value())
        except ProviderError as e:
            _audit_logger.warning(
                "Sign-in rejected for %s: %s",
                username,
                e.message,
                extra={
                    "event_category": "audit",
                    "action": "sign_in_failure",
                    "username": username,
                    "reason": e.code,
                },
            )
            raise
        return self._handle_sign_in(user)

    async def attempt(self, credentials: Credentials | Mapping[str, Any]) -> AuthOutcome:
        """Same as :meth:`authenticate` but reports the result instead of raising.

        Programming errors (:class:`InvalidChallengeStateError`) still raise.
        """
        try:
            record = await self.authenticate(credentials)
        except ChallengeRequiredError as e:
            return AuthOutcome(status=AuthStatus.CHALLENGE, state=e.state)
        except ProviderError as e:
            return AuthOutcome(status=AuthStatus.FAILED, error=e.message, error_code=e.code)
        except ChallengeExpiredError as e:
            return AuthOutcome(status=AuthStatus.FAILED, error=e.message, error_code=e.error_type)
        return AuthOutcome(status=AuthStatus.AUTHENTICATED, record=record)

    def _handle_sign_in(self, user: UserHandle) -> SessionRecord:
        if user.has_challenge:
            raise ChallengeRequiredError(self._pause(user))

        self.provider.session.set_user(user)
        _audit_logger.info(
            "Signed in %s",
            user.username,
            extra={"event_category": "audit", "action": "sign_in", "username": user.username},
        )
        return self._record()

    def _pause(self, user: UserHandle) -> ChallengeState:
        kind = ChallengeKind.from_provider(user.challenge_name)
        if kind is None:
            raise ProviderError(
                f"Unsupported challenge: {user.challenge_name}",
                code="UnsupportedChallengeException",
            )
        attempt_id = self.provider.session.park(user)
        required = user.challenge_parameters.get("requiredAttributes") or []
        state = ChallengeState(
            name=kind,
            context=ChallengeContext(
                attempt_id=attempt_id,
                username=user.username,
                required_attributes=list(required),
            ),
        )
        _audit_logger.info(
            "Challenge %s issued for %s",
            kind.value,
            user.username,
            extra={
                "event_category": "audit",
                "action": "challenge_issued",
                "username": user.username,
                "challenge": kind.value,
            },
        )
        return state

    # -- challenge resolution -------------------------------------------------

    async def _resume(self, creds: Credentials, state: ChallengeState) -> SessionRecord:
        resolver = self._resolvers.get(state.name)
        if resolver is None:
            raise InvalidChallengeStateError(f"Invalid state: {state.name!r}")
        return await resolver(creds, state)

    async def _resolve_new_password(
        self, creds: Credentials, state: ChallengeState
    ) -> SessionRecord:
        user = self.provider.session.claim(state.context.attempt_id)
        if user.username != state.context.username:
            raise InvalidChallengeStateError("Challenge state does not match the paused sign-in")
        try:
            completed = await self.provider.complete_new_password(
                user,
                creds.password.get_secret_value(),
                attributes=dict(creds.attributes) or None,
            )
        except ProviderError as e:
            _audit_logger.warning(
                "New password rejected for %s: %s",
                user.username,
                e.message,
                extra={
                    "event_category": "audit",
                    "action": "challenge_failure",
                    "username": user.username,
                    "challenge": state.name.value,
                },
            )
            raise
        return self._handle_sign_in(completed)

    # -- restore / invalidate -------------------------------------------------

    async def restore(self, data: SessionData) -> SessionData:
        if not isinstance(data, SessionRecord):
            SessionRecord.model_validate(data)
        try:
            user = await self.provider.current_authenticated_user()
        except NoCurrentUserError:
            _audit_logger.info(
                "Restore found no live session",
                extra={"event_category": "audit", "action": "restore_miss"},
            )
            raise NotAuthenticatedError() from None
        self.provider.session.set_user(user)
        logger.debug("Restored session for %s", user.username)
        return data

    async def invalidate(self, data: SessionData) -> SessionData:
        username = self.user.username if self.user is not None else None
        try:
            await self.provider.sign_out()
        except CognitoSessionError as e:
            logger.warning("Provider sign-out failed, clearing local session anyway: %s", e.message)
        self.provider.session.clear()
        _audit_logger.info(
            "Signed out %s",
            username or "(no user)",
            extra={"event_category": "audit", "action": "sign_out", "username": username},
        )
        return data
