"""Cognito user pool provider over the cognito-idp JSON API.

Only the public, unsigned client actions are used (``InitiateAuth``,
``RespondToAuthChallenge``, ``GetUser``, ``GlobalSignOut``), so no AWS
credentials are needed -- just the pool id and an app client without a
secret that allows ``USER_PASSWORD_AUTH``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from cognito_session.core.models import AuthTokens, UserHandle
from cognito_session.core.session import SessionContext, active_session
from cognito_session.exceptions import ConfigurationError, NoCurrentUserError, ProviderError

logger = logging.getLogger("cognito_session.auth_providers.cognito")

_TARGET_PREFIX = "AWSCognitoIdentityProviderService."
_CONTENT_TYPE = "application/x-amz-json-1.1"

# Flows that carry the password in AuthParameters and need no SRP exchange.
_PASSWORD_FLOWS = frozenset({"USER_PASSWORD_AUTH"})

# Error codes meaning "these tokens no longer identify a signed-in user".
_SESSION_GONE = frozenset({"NotAuthorizedException", "UserNotFoundException"})


def _error_code(body: dict[str, Any], response: httpx.Response) -> str | None:
    raw = body.get("__type") or response.headers.get("x-amzn-errortype")
    if not raw:
        return None
    # "com.amazonaws...#NotAuthorizedException" or "NotAuthorizedException:http://..."
    return raw.rsplit("#", 1)[-1].split(":", 1)[0]


def _required_attributes(parameters: dict[str, Any]) -> list[str]:
    raw = parameters.get("requiredAttributes")
    if not raw:
        return []
    names = json.loads(raw) if isinstance(raw, str) else list(raw)
    return [n.removeprefix("userAttributes.") for n in names]


class CognitoProvider:
    """Session provider backed by a Cognito user pool."""

    name = "cognito"

    def __init__(
        self,
        pool_id: str,
        client_id: str,
        *,
        endpoint_url: str,
        authentication_flow_type: str = "USER_PASSWORD_AUTH",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if authentication_flow_type not in _PASSWORD_FLOWS:
            msg = (
                f"Authentication flow {authentication_flow_type} is not supported by the "
                f"cognito provider; use one of {sorted(_PASSWORD_FLOWS)}"
            )
            raise ConfigurationError(msg)
        if not client_id:
            raise ConfigurationError("client_id required for cognito provider")
        self.pool_id = pool_id
        self.client_id = client_id
        self.endpoint_url = endpoint_url
        self.authentication_flow_type = authentication_flow_type
        self._session = SessionContext()
        self._timeout = timeout
        self._transport = transport

    @property
    def session(self) -> SessionContext:
        """The caller's bound context, or this provider's own slot."""
        return active_session(self._session)

    async def _call(self, action: str, payload: dict[str, Any]) -> dict[str, Any]:
        headers = {
            "Content-Type": _CONTENT_TYPE,
            "X-Amz-Target": _TARGET_PREFIX + action,
        }
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                resp = await client.post(
                    self.endpoint_url, content=json.dumps(payload), headers=headers
                )
            except httpx.RequestError as exc:
                logger.warning(
                    "cognito-idp %s request failed",
                    action,
                    extra={"action": action, "error_type": exc.__class__.__name__},
                )
                raise ProviderError(
                    f"Network error contacting identity provider: {exc.__class__.__name__}",
                    code="NetworkError",
                ) from exc

        try:
            body = resp.json() if resp.content else {}
        except ValueError:
            body = {}

        if resp.status_code != 200:
            code = _error_code(body, resp)
            message = body.get("message") or body.get("Message") or f"HTTP {resp.status_code}"
            logger.info(
                "cognito-idp %s returned %s (%s)",
                action,
                resp.status_code,
                code,
                extra={"action": action, "status_code": resp.status_code},
            )
            raise ProviderError(message, code=code, payload=body)
        return body

    def _handle_from_response(self, username: str, data: dict[str, Any]) -> UserHandle:
        challenge = data.get("ChallengeName")
        if challenge:
            parameters = dict(data.get("ChallengeParameters") or {})
            parameters["requiredAttributes"] = _required_attributes(parameters)
            return UserHandle(
                username=username,
                pool_id=self.pool_id,
                client_id=self.client_id,
                challenge_name=challenge,
                challenge_parameters=parameters,
                session=data.get("Session"),
            )

        result = data.get("AuthenticationResult") or {}
        if not result.get("AccessToken"):
            raise ProviderError("No AccessToken in response", code="InvalidResponse", payload=data)
        return UserHandle(
            username=username,
            pool_id=self.pool_id,
            client_id=self.client_id,
            tokens=AuthTokens(
                access_token=result["AccessToken"],
                id_token=result.get("IdToken"),
                refresh_token=result.get("RefreshToken"),
                expires_in=result.get("ExpiresIn"),
                token_type=result.get("TokenType", "Bearer"),
            ),
        )

    async def sign_in(self, username: str, password: str) -> UserHandle:
        data = await self._call(
            "InitiateAuth",
            {
                "AuthFlow": self.authentication_flow_type,
                "ClientId": self.client_id,
                "AuthParameters": {"USERNAME": username, "PASSWORD": password},
            },
        )
        return self._handle_from_response(username, data)

    async def complete_new_password(
        self,
        user: UserHandle,
        new_password: str,
        attributes: dict[str, str] | None = None,
    ) -> UserHandle:
        responses = {
            "USERNAME": user.challenge_parameters.get("USER_ID_FOR_SRP", user.username),
            "NEW_PASSWORD": new_password,
        }
        for key, value in (attributes or {}).items():
            responses[f"userAttributes.{key}"] = value

        data = await self._call(
            "RespondToAuthChallenge",
            {
                "ChallengeName": "NEW_PASSWORD_REQUIRED",
                "ClientId": self.client_id,
                "Session": user.session,
                "ChallengeResponses": responses,
            },
        )
        return self._handle_from_response(user.username, data)

    async def current_authenticated_user(self) -> UserHandle:
        user = self.session.user
        if user is None or user.tokens is None:
            raise NoCurrentUserError()
        try:
            await self._call("GetUser", {"AccessToken": user.tokens.access_token})
        except ProviderError as e:
            if e.code in _SESSION_GONE:
                self.session.clear()
                raise NoCurrentUserError(e.message) from e
            raise
        return user

    async def sign_out(self) -> None:
        user = self.session.user
        try:
            if user is not None and user.tokens is not None:
                await self._call("GlobalSignOut", {"AccessToken": user.tokens.access_token})
        finally:
            self.session.clear()
