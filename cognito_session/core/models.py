"""Domain models for resumable sign-in.

- SessionRecord: non-secret {poolId, clientId} descriptor handed to the session framework
- ChallengeKind / ChallengeState: single-use token for a sign-in paused on a challenge
- Credentials: input to ``Authenticator.authenticate``
- UserHandle / AuthTokens: the provider's live view of a user
- AuthOutcome: unified result of a sign-in attempt
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)

from cognito_session.exceptions import InvalidChallengeStateError

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ChallengeKind(str, Enum):
    NEW_PASSWORD_REQUIRED = "newPasswordRequired"

    @classmethod
    def from_provider(cls, challenge_name: str | None) -> ChallengeKind | None:
        """Map a provider challenge name (``NEW_PASSWORD_REQUIRED``) to a kind."""
        if not challenge_name:
            return None
        return _PROVIDER_CHALLENGES.get(challenge_name)


_PROVIDER_CHALLENGES: dict[str, ChallengeKind] = {
    "NEW_PASSWORD_REQUIRED": ChallengeKind.NEW_PASSWORD_REQUIRED,
}


class AuthStatus(str, Enum):
    AUTHENTICATED = "authenticated"
    CHALLENGE = "challenge"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# SessionRecord
# ---------------------------------------------------------------------------


class SessionRecord(BaseModel):
    """Which pool/application a session belongs to. A lookup key, not a credential."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    pool_id: str = Field(alias="poolId")
    client_id: str = Field(alias="clientId")

    def to_dict(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# ChallengeState
# ---------------------------------------------------------------------------


class ChallengeContext(BaseModel):
    """What a resuming call needs to find the parked attempt.

    The in-flight user handle itself stays with the provider's session
    context under ``attempt_id``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    attempt_id: str = Field(alias="attemptId")
    username: str
    required_attributes: list[str] = Field(default_factory=list, alias="requiredAttributes")


class ChallengeState(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: ChallengeKind
    context: ChallengeContext

    def to_token(self) -> str:
        """Encode as an opaque URL-safe string."""
        raw = self.model_dump_json(by_alias=True).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    @classmethod
    def from_token(cls, token: str) -> ChallengeState:
        padded = token + "=" * (-len(token) % 4)
        try:
            raw = base64.urlsafe_b64decode(padded.encode("ascii"))
            return cls.model_validate_json(raw)
        except ValueError as e:
            # binascii.Error and pydantic's ValidationError are both ValueErrors
            raise InvalidChallengeStateError(f"Malformed challenge token: {e}") from e


class Credentials(BaseModel):
    """Either ``{username, password}`` or ``{password, state}``."""

    model_config = ConfigDict(frozen=True)

    username: str | None = None
    password: SecretStr
    state: ChallengeState | None = None
    # Extra user attributes the provider requires when setting a new password.
    attributes: dict[str, str] = Field(default_factory=dict)

    @field_validator("state", mode="before")
    @classmethod
    def decode_state_token(cls, v: Any) -> Any:
        if isinstance(v, str):
            return ChallengeState.from_token(v)
        return v

    @model_validator(mode="after")
    def require_username_or_state(self) -> Credentials:
        if self.state is None and not self.username:
            raise ValueError("username is required unless resuming a challenge state")
        return self

    @classmethod
    def parse(cls, value: Credentials | dict[str, Any]) -> Credentials:
        if isinstance(value, Credentials):
            return value
        try:
            return cls.model_validate(value)
        except ValidationError as e:
            if "state" in value and all(err["loc"][:1] == ("state",) for err in e.errors()):
                msg = f"Unrecognized challenge state: {value['state']!r}"
                raise InvalidChallengeStateError(msg) from e
            raise


# ---------------------------------------------------------------------------
# Provider-side user view
# ---------------------------------------------------------------------------


@dataclass
class AuthTokens:
    access_token: str
    id_token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None
    token_type: str = "Bearer"


@dataclass
class UserHandle:
    """A user as the provider currently sees it.

    ``challenge_name`` is the provider-native name (``NEW_PASSWORD_REQUIRED``)
    and is ``None`` once the user is fully signed in.
    """

    username: str
    pool_id: str
    client_id: str
    challenge_name: str | None = None
    challenge_parameters: dict[str, Any] = field(default_factory=dict)
    session: str | None = None
    tokens: AuthTokens | None = None

    @property
    def has_challenge(self) -> bool:
        return self.challenge_name is not None


# ---------------------------------------------------------------------------
# AuthOutcome
# ---------------------------------------------------------------------------


@dataclass
class AuthOutcome:
    """Result of a sign-in attempt: a record, a pending challenge, or an error."""

    status: AuthStatus
    record: SessionRecord | None = None
    state: ChallengeState | None = None
    error: str | None = None
    error_code: str | None = None

    @property
    def authenticated(self) -> bool:
        return self.status is AuthStatus.AUTHENTICATED
