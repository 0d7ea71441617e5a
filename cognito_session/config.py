"""Centralized configuration for cognito-session.

Uses Pydantic BaseSettings with environment variable loading and validation.
All COGNITO_* environment variables are validated at import time.
"""

from __future__ import annotations

import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# AuthFlowType values accepted by InitiateAuth / AdminInitiateAuth.
AUTH_FLOW_TYPES: frozenset[str] = frozenset(
    {
        "USER_SRP_AUTH",
        "USER_PASSWORD_AUTH",
        "ADMIN_USER_PASSWORD_AUTH",
        "CUSTOM_AUTH",
        "REFRESH_TOKEN_AUTH",
        "USER_AUTH",
    }
)

_POOL_ID_RE = re.compile(r"^(?P<region>[a-z]{2}(?:-[a-z]+)+-\d+)_[0-9A-Za-z]+$")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Identity pool
    pool_id: str = Field(default="", description="User pool id, e.g. us-east-1_AbCdEf")
    client_id: str = Field(default="", description="App client id")
    authentication_flow_type: str = Field(
        default="USER_PASSWORD_AUTH", description="AuthFlow passed to InitiateAuth"
    )

    # Provider
    provider: str = Field(default="cognito", description="Session provider: cognito or memory")
    endpoint_url: str | None = Field(
        default=None, description="Override the cognito-idp endpoint (local emulators)"
    )
    request_timeout: float = Field(default=10.0, gt=0, description="HTTP timeout in seconds")

    # Sessions
    challenge_ttl: float = Field(
        default=180.0, gt=0, description="Seconds a paused challenge can be resumed"
    )
    max_pending_challenges: int = Field(
        default=32, ge=1, description="Paused challenges kept per caller"
    )
    session_ttl: float = Field(
        default=3600.0, gt=0, description="Idle seconds before an HTTP session is dropped"
    )
    max_sessions: int = Field(default=10_000, ge=1, description="HTTP sessions kept in memory")
    session_cookie_name: str = Field(default="cognito_session", min_length=1)
    session_cookie_secure: bool = Field(
        default=False, description="Mark the session cookie Secure (HTTPS only)"
    )

    # Logging
    log_format: str = Field(default="text", description="Log format: text or json")
    log_level: str = Field(default="INFO", description="Python log level")

    # Server
    host: str = Field(default="127.0.0.1", description="Server bind host")
    port: int = Field(default=8000, ge=1, le=65535, description="Server bind port")

    # CORS
    cors_origins: str = Field(default="*", description="Comma-separated CORS origins")

    model_config = {"env_prefix": "COGNITO_", "case_sensitive": False, "extra": "ignore"}

    @field_validator("pool_id")
    @classmethod
    def validate_pool_id(cls, v: str) -> str:
        v = v.strip()
        if v and not _POOL_ID_RE.match(v):
            msg = f"COGNITO_POOL_ID must look like '<region>_<id>', got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("authentication_flow_type")
    @classmethod
    def validate_flow_type(cls, v: str) -> str:
        v = v.upper()
        if v not in AUTH_FLOW_TYPES:
            allowed = ", ".join(sorted(AUTH_FLOW_TYPES))
            msg = f"COGNITO_AUTHENTICATION_FLOW_TYPE must be one of {allowed}, got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        v = v.lower()
        if v not in ("cognito", "memory"):
            msg = f"COGNITO_PROVIDER must be 'cognito' or 'memory', got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("text", "json"):
            msg = f"COGNITO_LOG_FORMAT must be 'text' or 'json', got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        import logging

        v = v.upper()
        if not hasattr(logging, v):
            msg = f"COGNITO_LOG_LEVEL must be a valid Python log level, got '{v}'"
            raise ValueError(msg)
        return v

    @property
    def region(self) -> str | None:
        """Region encoded in the pool id prefix (``us-east-1_X`` -> ``us-east-1``)."""
        match = _POOL_ID_RE.match(self.pool_id)
        return match.group("region") if match else None

    @property
    def cognito_endpoint(self) -> str | None:
        """Return the cognito-idp endpoint for the configured pool."""
        if self.endpoint_url:
            return self.endpoint_url.rstrip("/") + "/"
        if self.region is None:
            return None
        return f"https://cognito-idp.{self.region}.amazonaws.com/"

    @property
    def cors_origin_list(self) -> list[str]:
        """Return parsed list of CORS origins."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


# Singleton, validated at import time.
settings = Settings()
