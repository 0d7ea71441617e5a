"""Custom exception hierarchy for cognito-session.

Provides structured error types that the centralized error handler
translates into consistent JSON responses.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from cognito_session.core.models import ChallengeState

# Rejection value of ``restore`` when the provider has no live session.
NOT_AUTHENTICATED = "user not authenticated"


class CognitoSessionError(Exception):
    """Base exception for all cognito-session errors."""

    status_code: int = 500
    error_type: str = "internal_error"

    def __init__(self, message: str = "An internal error occurred") -> None:
        self.message = message
        super().__init__(message)


class ProviderError(CognitoSessionError):
    """Rejection raised by the identity backend (bad credentials, network)."""

    status_code = 401
    error_type = "provider_error"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.payload = payload or {"message": message}


class ChallengeRequiredError(CognitoSessionError):
    """Sign-in paused: the provider wants one more input before issuing a session."""

    status_code = 401
    error_type = "challenge_required"

    def __init__(self, state: ChallengeState) -> None:
        super().__init__(f"Challenge required: {state.name.value}")
        self.state = state


class ChallengeExpiredError(CognitoSessionError):
    """The challenge token was already consumed or never issued by this process."""

    status_code = 409
    error_type = "challenge_expired"


class NotAuthenticatedError(CognitoSessionError):
    """No live session on the provider side; the saved session is stale.

    Compares equal to :data:`NOT_AUTHENTICATED` so callers matching on the
    sentinel value keep working.
    """

    status_code = 401
    error_type = "not_authenticated"

    def __init__(self) -> None:
        super().__init__(NOT_AUTHENTICATED)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, str):
            return other == NOT_AUTHENTICATED
        return isinstance(other, NotAuthenticatedError)

    def __hash__(self) -> int:
        return hash(NOT_AUTHENTICATED)


class NoCurrentUserError(CognitoSessionError):
    """The provider's current-user slot is empty or its tokens were rejected."""

    status_code = 401
    error_type = "no_current_user"

    def __init__(self, message: str = "No current user") -> None:
        super().__init__(message)


class InvalidChallengeStateError(CognitoSessionError):
    """A challenge state with a name this package never issues."""

    status_code = 400
    error_type = "invalid_challenge_state"


class ConfigurationError(CognitoSessionError):
    """Settings cannot produce a working provider."""

    status_code = 500
    error_type = "configuration_error"
