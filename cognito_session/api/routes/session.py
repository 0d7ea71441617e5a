"""Session routes: sign in, resume a challenge, restore and sign out.

Each HTTP caller gets its own :class:`SessionContext`, found through an
HttpOnly cookie issued by ``POST /session``. The cookie is written by the
app middleware from ``request.state.session_cookie``.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, Field, ValidationError

from cognito_session.core.models import SessionRecord
from cognito_session.core.orchestrator import Authenticator
from cognito_session.core.session import SessionContext, SessionStore, bind_session
from cognito_session.exceptions import NotAuthenticatedError

router = APIRouter(prefix="/session", tags=["session"])


class SignInRequest(BaseModel):
    username: str | None = None
    password: str
    state: str | None = Field(default=None, description="Challenge token from a 401 response")
    attributes: dict[str, str] = Field(default_factory=dict)


def get_authenticator(request: Request) -> Authenticator:
    return request.app.state.authenticator


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.sessions


def _session_id(request: Request) -> str | None:
    return request.cookies.get(request.app.state.settings.session_cookie_name)


@router.post("", response_model=SessionRecord)
async def sign_in(
    req: SignInRequest,
    request: Request,
    auth: Authenticator = Depends(get_authenticator),
    store: SessionStore = Depends(get_session_store),
):
    """Sign in, or answer the challenge named by ``state``."""
    session_id = _session_id(request)
    ctx = store.get(session_id)
    if ctx is None:
        session_id, ctx = store.create()
    try:
        with bind_session(ctx):
            return await auth.authenticate(req.model_dump(exclude_none=True))
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False, include_context=False)) from e
    finally:
        # Keep the cookie while there is a user or a challenge to come back to.
        if ctx.is_empty:
            store.discard(session_id)
        else:
            request.state.session_cookie = session_id


@router.post("/restore", response_model=SessionRecord)
async def restore(
    record: SessionRecord,
    request: Request,
    auth: Authenticator = Depends(get_authenticator),
    store: SessionStore = Depends(get_session_store),
):
    """Confirm the caller's saved session still has a live provider session."""
    ctx = store.get(_session_id(request))
    if ctx is None:
        raise NotAuthenticatedError()
    with bind_session(ctx):
        return await auth.restore(record)


@router.delete("", response_model=SessionRecord)
async def invalidate(
    record: SessionRecord,
    request: Request,
    auth: Authenticator = Depends(get_authenticator),
    store: SessionStore = Depends(get_session_store),
):
    """Sign the caller out. Always succeeds."""
    session_id = _session_id(request)
    ctx = store.get(session_id) or SessionContext()
    with bind_session(ctx):
        result = await auth.invalidate(record)
    store.discard(session_id)
    if session_id:
        request.state.session_cookie = None
    return result
