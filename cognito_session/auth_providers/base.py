"""Session provider protocol: the identity backend as the orchestrator sees it."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from cognito_session.core.models import UserHandle
from cognito_session.core.session import SessionContext


@runtime_checkable
class SessionProvider(Protocol):
    """Protocol that all session providers must implement.

    Failures are raised as :class:`~cognito_session.exceptions.ProviderError`
    carrying the backend's own message. ``session`` resolves to the context
    bound with :func:`~cognito_session.core.session.bind_session` when there
    is one, else to the provider's own slot.
    """

    name: str

    @property
    def session(self) -> SessionContext: ...

    async def sign_in(self, username: str, password: str) -> UserHandle:
        """Start a sign-in. The returned handle may carry a pending challenge."""
        ...

    async def complete_new_password(
        self,
        user: UserHandle,
        new_password: str,
        attributes: dict[str, str] | None = None,
    ) -> UserHandle:
        """Answer a NEW_PASSWORD_REQUIRED challenge for ``user``."""
        ...

    async def current_authenticated_user(self) -> UserHandle:
        """Return the live current user or raise ``NoCurrentUserError``."""
        ...

    async def sign_out(self) -> None:
        """End the current session. Safe to call with no user signed in."""
        ...
