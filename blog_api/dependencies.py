from fastapi import Depends, Request

from blog_api.auth import CredentialHasher
from blog_api.errors import UnauthorizedError
from blog_api.sessions import SessionContext, SessionUser


def get_session(request: Request) -> SessionContext:
    """The SessionContext the session middleware attached to this request."""
    return request.state.session


def get_hasher(request: Request) -> CredentialHasher:
    return request.app.state.hasher


def require_user(session: SessionContext = Depends(get_session)) -> SessionUser:
    """
    Auth guard for protected routes.

    Runs before the route handler; raising here means the handler is never
    called. Passes only for a live session that carries a logged-in user.
    """
    user = session.user
    if user is None or session.is_expired():
        raise UnauthorizedError("Not authenticated")
    return user
