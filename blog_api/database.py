from contextlib import contextmanager
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from blog_api.config import Settings


class Base(DeclarativeBase):
    """Base class for all models."""


class Database:
    """
    Owns the engine and session factory for one application instance.

    Built by the app factory and disposed at shutdown, so nothing holds a
    connection pool at import time.
    """

    def __init__(self, settings: Settings):
        url = settings.database_url
        if url.startswith("sqlite"):
            # check_same_thread=False needed for SQLite with FastAPI's threadpool
            connect_args = {"check_same_thread": False, "timeout": settings.database_timeout}
            engine_args = {}
        else:
            connect_args = {}
            engine_args = {"pool_pre_ping": True, "pool_timeout": settings.database_timeout}

        self.engine = create_engine(
            url,
            connect_args=connect_args,
            echo=settings.debug and settings.log_level.upper() == "DEBUG",
            **engine_args,
        )
        self.session_factory = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )

    def init_schema(self) -> None:
        """Create all tables defined in models."""
        # Registers the mapped classes on Base.metadata
        import blog_api.models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request) -> Iterator[Session]:
    """
    Dependency that provides a database session to route handlers.
    Ensures session is properly closed after request.
    """
    database: Database = request.app.state.database
    with database.session() as db:
        yield db
