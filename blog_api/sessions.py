from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Request, Response
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from blog_api.auth import CookieSigner, generate_session_id
from blog_api.config import Settings
from blog_api.database import Database
from blog_api.errors import UpstreamUnavailableError, error_response
from blog_api.log import logger
from blog_api.models import SessionRecord, User


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SessionStoreError(Exception):
    """The session backend could not be reached or refused the operation."""


@dataclass(frozen=True)
class SessionUser:
    """What a session remembers about its user after login."""
    id: str
    username: str


@dataclass
class SessionContext:
    """
    The session attached to one request.

    Handlers mutate it through login(), destroy() and set(); the middleware
    writes it back once when the response is produced.
    """
    session_id: str
    data: Dict[str, Any] = field(default_factory=dict)
    expires_at: Optional[datetime] = None
    is_new: bool = True
    modified: bool = False
    destroyed: bool = False
    # Id this session was stored under before regenerate(); deleted on commit
    replaced_id: Optional[str] = None

    @property
    def user(self) -> Optional[SessionUser]:
        ref = self.data.get("user")
        if not ref:
            return None
        return SessionUser(id=ref["id"], username=ref["username"])

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utcnow())

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value
        self.modified = True

    def regenerate(self) -> None:
        """Move the session to a fresh id, keeping its data."""
        if not self.is_new and self.replaced_id is None:
            self.replaced_id = self.session_id
        self.session_id = generate_session_id()
        self.is_new = True
        self.modified = True

    def login(self, user: User) -> None:
        self.regenerate()
        self.set("user", {"id": user.id, "username": user.username})

    def destroy(self) -> None:
        self.data = {}
        self.destroyed = True


class SessionStore:
    """
    Session records keyed by session id, with an absolute expiry per record.

    Writes are last-write-wins: two requests on the same session id each
    store their own copy and whichever commits last is kept.
    """

    def __init__(self, database: Database, idle_timeout: timedelta):
        self.database = database
        self.idle_timeout = idle_timeout

    def get(self, session_id: str) -> Optional[SessionRecord]:
        try:
            with self.database.session() as db:
                return db.get(SessionRecord, session_id)
        except SQLAlchemyError as e:
            raise SessionStoreError(str(e)) from e

    def set(self, session_id: str, data: Dict[str, Any], expires_at: datetime) -> None:
        try:
            with self.database.session() as db:
                db.merge(SessionRecord(session_id=session_id, data=data, expires_at=expires_at))
                db.commit()
        except SQLAlchemyError as e:
            raise SessionStoreError(str(e)) from e

    def delete(self, session_id: str) -> bool:
        try:
            with self.database.session() as db:
                result = db.execute(delete(SessionRecord).where(SessionRecord.session_id == session_id))
                db.commit()
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise SessionStoreError(str(e)) from e

    def purge_expired(self) -> int:
        """
        Remove expired sessions.

        Returns number of sessions cleaned up.
        """
        try:
            with self.database.session() as db:
                result = db.execute(delete(SessionRecord).where(SessionRecord.expires_at <= utcnow()))
                db.commit()
                return result.rowcount
        except SQLAlchemyError as e:
            raise SessionStoreError(str(e)) from e

    def count(self) -> int:
        try:
            with self.database.session() as db:
                return db.scalar(select(func.count()).select_from(SessionRecord))
        except SQLAlchemyError as e:
            raise SessionStoreError(str(e)) from e

    def load(self, session_id: Optional[str]) -> SessionContext:
        """
        Resolve a cookie-carried id to a session.

        Unknown ids and expired records both come back as a fresh anonymous
        session under a new id. Expired records are deleted on the way.
        """
        if session_id:
            record = self.get(session_id)
            if record is not None:
                expires_at = _as_utc(record.expires_at)
                if expires_at > utcnow():
                    return SessionContext(
                        session_id=record.session_id,
                        data=dict(record.data or {}),
                        expires_at=expires_at,
                        is_new=False,
                    )
                logger.info(f"Session expired: {session_id[:8]}...")
                self.delete(session_id)
        return SessionContext(session_id=generate_session_id())

    def commit(self, session: SessionContext) -> bool:
        """
        Write the request's session state back.

        Returns True when the client should (still) hold a cookie for
        session.session_id. Untouched anonymous sessions are not stored.
        """
        if session.replaced_id:
            self.delete(session.replaced_id)

        if session.destroyed:
            if not session.is_new:
                self.delete(session.session_id)
            return False

        if session.is_new and not session.modified:
            return False

        # Sliding expiry: every use pushes the deadline out again
        session.expires_at = utcnow() + self.idle_timeout
        self.set(session.session_id, session.data, session.expires_at)
        return True


def set_session_cookie(response: Response, settings: Settings, value: str) -> None:
    """
    Set session cookie with security flags.

    The cookie only contains the signed session id (opaque token).
    All user data stays server-side. max_age matches the store-side
    idle timeout.
    """
    response.set_cookie(
        key=settings.session_cookie_name,
        value=value,
        httponly=settings.cookie_httponly,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        max_age=settings.session_idle_seconds,
        path="/",
        domain=settings.cookie_domain if settings.cookie_domain != "localhost" else None,
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        domain=settings.cookie_domain if settings.cookie_domain != "localhost" else None,
        secure=settings.cookie_secure,
        httponly=True,
        samesite=settings.cookie_samesite,
    )


def _store_unavailable(request: Request, exc: SessionStoreError) -> Response:
    logger.error(f"Session store unavailable on {request.method} {request.url.path}: {exc}")
    return error_response(UpstreamUnavailableError("Session store unavailable"))


async def session_middleware(request: Request, call_next):
    """
    Attach a SessionContext to request.state.session and persist it afterwards.

    A store failure on either side of the handler fails the request with
    503 instead of letting it continue as anonymous.
    """
    settings: Settings = request.app.state.settings
    store: SessionStore = request.app.state.session_store
    signer: CookieSigner = request.app.state.cookie_signer

    raw = request.cookies.get(settings.session_cookie_name)
    session_id = signer.unsign(raw) if raw else None
    if raw and session_id is None:
        logger.warning(f"Ignoring session cookie with bad signature on {request.url.path}")

    try:
        session = await run_in_threadpool(store.load, session_id)
    except SessionStoreError as e:
        return _store_unavailable(request, e)

    request.state.session = session
    response = await call_next(request)

    try:
        keep = await run_in_threadpool(store.commit, session)
    except SessionStoreError as e:
        return _store_unavailable(request, e)

    if keep:
        set_session_cookie(response, settings, signer.sign(session.session_id))
    elif raw:
        clear_session_cookie(response, settings)
    return response
