"""In-process session provider for tests, demos and local development."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field

from cognito_session.core.models import AuthTokens, UserHandle
from cognito_session.core.session import SessionContext, active_session
from cognito_session.exceptions import NoCurrentUserError, ProviderError

logger = logging.getLogger("cognito_session.auth_providers.memory")

_BAD_CREDENTIALS = "Incorrect username or password."


@dataclass
class MemoryUser:
    password: str
    force_new_password: bool = False
    required_attributes: list[str] = field(default_factory=list)
    attributes: dict[str, str] = field(default_factory=dict)


class InMemoryProvider:
    """Deterministic provider with no network calls.

    ``sign_in_error`` and ``completion_error`` make the next calls reject
    with that message, the way a backend would on bad input.
    """

    name = "memory"

    def __init__(self, pool_id: str, client_id: str) -> None:
        self.pool_id = pool_id
        self.client_id = client_id
        self._session = SessionContext()
        self.users: dict[str, MemoryUser] = {}
        self.sign_in_error: str | None = None
        self.completion_error: str | None = None
        self.sign_out_calls = 0

    @property
    def session(self) -> SessionContext:
        return active_session(self._session)

    def add_user(
        self,
        username: str,
        password: str,
        *,
        force_new_password: bool = False,
        required_attributes: list[str] | None = None,
    ) -> MemoryUser:
        user = MemoryUser(
            password=password,
            force_new_password=force_new_password,
            required_attributes=list(required_attributes or []),
        )
        self.users[username] = user
        return user

    def _issue_tokens(self) -> AuthTokens:
        return AuthTokens(
            access_token=secrets.token_urlsafe(24),
            id_token=secrets.token_urlsafe(24),
            refresh_token=secrets.token_urlsafe(24),
            expires_in=3600,
        )

    async def sign_in(self, username: str, password: str) -> UserHandle:
        if self.sign_in_error is not None:
            raise ProviderError(self.sign_in_error, code="NotAuthorizedException")
        user = self.users.get(username)
        if user is None or not secrets.compare_digest(user.password, password):
            raise ProviderError(_BAD_CREDENTIALS, code="NotAuthorizedException")

        if user.force_new_password:
            return UserHandle(
                username=username,
                pool_id=self.pool_id,
                client_id=self.client_id,
                challenge_name="NEW_PASSWORD_REQUIRED",
                challenge_parameters={"requiredAttributes": list(user.required_attributes)},
                session=secrets.token_urlsafe(16),
            )
        return UserHandle(
            username=username,
            pool_id=self.pool_id,
            client_id=self.client_id,
            tokens=self._issue_tokens(),
        )

    async def complete_new_password(
        self,
        user: UserHandle,
        new_password: str,
        attributes: dict[str, str] | None = None,
    ) -> UserHandle:
        if self.completion_error is not None:
            raise ProviderError(self.completion_error, code="InvalidPasswordException")
        stored = self.users.get(user.username)
        if stored is None or user.session is None:
            raise ProviderError("Invalid session for the user.", code="NotAuthorizedException")
        missing = [a for a in stored.required_attributes if a not in (attributes or {})]
        if missing:
            raise ProviderError(
                f"Missing required attributes: {', '.join(missing)}",
                code="InvalidParameterException",
            )

        stored.password = new_password
        stored.force_new_password = False
        stored.attributes.update(attributes or {})
        return UserHandle(
            username=user.username,
            pool_id=self.pool_id,
            client_id=self.client_id,
            tokens=self._issue_tokens(),
        )

    async def current_authenticated_user(self) -> UserHandle:
        user = self.session.user
        if user is None or user.tokens is None:
            raise NoCurrentUserError()
        return user

    async def sign_out(self) -> None:
        self.sign_out_calls += 1
        self.session.clear()
