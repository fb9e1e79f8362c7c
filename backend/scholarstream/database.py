"""Database engine and helpers.

This module wraps the SQLModel/SQLAlchemy engine in a small `Database`
object. One instance is built by the application factory and stored on
`app.state`; request handlers get a `Session` through the `get_session`
dependency instead of importing a module-level engine.
"""

from typing import Iterator

from fastapi import Request
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

# registers the table classes on the metadata
from . import models  # noqa: F401


class Database:
    """Persistence context for the users, scholarships, applications and reviews tables."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        kwargs = {}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            # in-memory databases live as long as their single connection
            if url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
        self.engine = create_engine(url, echo=echo, **kwargs)

    def create_all(self):
        """Create tables from SQLModel metadata.

        Intended for local development and tests; the tables are small
        enough that a migration tool is not needed yet.
        """
        SQLModel.metadata.create_all(self.engine)

    def session(self) -> Session:
        return Session(self.engine)

    def dispose(self):
        self.engine.dispose()


def get_session(request: Request) -> Iterator[Session]:
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session bound to the application's `Database`
    and ensures it is closed when the request scope finishes.
    """
    database: Database = request.app.state.database
    with database.session() as session:
        yield session
