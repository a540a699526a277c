import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from blog_api.database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    """
    Account record.

    Design notes:
    - username is unique and indexed, it is the login key
    - password_hash never leaves the database layer
    - rows are only ever inserted by signup
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username})>"


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self):
        return f"<Post(id={self.id}, title={self.title!r})>"


class SessionRecord(Base):
    """
    Server-side session storage.

    Design notes:
    - session_id is the token carried (signed) in the cookie
    - data is a small JSON document; data["user"] holds {id, username} after login
    - expires_at is pushed forward on every request that uses the session

    Session lifecycle:
    1. Stored the first time a handler writes to it
    2. Validated on each request against expires_at
    3. Deleted on logout or when found expired
    """
    __tablename__ = "sessions"

    session_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_sessions_expires_at", "expires_at"),
    )

    def __repr__(self):
        return f"<SessionRecord(session_id={self.session_id[:8]}..., expires_at={self.expires_at})>"
