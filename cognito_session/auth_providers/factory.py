"""Factory for creating session providers and authenticators from configuration."""

from __future__ import annotations

import logging

from cognito_session.auth_providers.base import SessionProvider
from cognito_session.config import Settings
from cognito_session.exceptions import ConfigurationError

logger = logging.getLogger("cognito_session.auth_providers.factory")


def create_provider(
    provider_name: str,
    *,
    pool_id: str,
    client_id: str,
    authentication_flow_type: str = "USER_PASSWORD_AUTH",
    endpoint_url: str | None = None,
    request_timeout: float = 10.0,
) -> SessionProvider:
    """Create a session provider by name."""
    if provider_name == "memory":
        from cognito_session.auth_providers.memory import InMemoryProvider

        return InMemoryProvider(pool_id, client_id)

    if provider_name == "cognito":
        if not endpoint_url:
            msg = "pool_id with a region prefix or endpoint_url required for cognito provider"
            raise ConfigurationError(msg)
        from cognito_session.auth_providers.cognito import CognitoProvider

        return CognitoProvider(
            pool_id,
            client_id,
            endpoint_url=endpoint_url,
            authentication_flow_type=authentication_flow_type,
            timeout=request_timeout,
        )

    msg = f"Unknown session provider: {provider_name}"
    raise ConfigurationError(msg)


def provider_from_settings(settings: Settings) -> SessionProvider:
    provider = create_provider(
        settings.provider,
        pool_id=settings.pool_id,
        client_id=settings.client_id,
        authentication_flow_type=settings.authentication_flow_type,
        endpoint_url=settings.cognito_endpoint,
        request_timeout=settings.request_timeout,
    )
    logger.debug("Created %s provider for pool %s", provider.name, settings.pool_id or "(unset)")
    return provider
