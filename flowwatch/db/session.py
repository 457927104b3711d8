"""Database session management."""

from __future__ import annotations

import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

logger = logging.getLogger(__name__)

# Execution option marking connections that open write transactions
WRITE_OPTION = "flowwatch_writer"


class Database:
    """Owns the async engine and session factory for one process.

    Built once by the application entry point and handed to every
    repository and engine that needs storage.
    """

    def __init__(
        self,
        url: str,
        echo: bool = False,
        busy_timeout_ms: int = 5000,
    ) -> None:
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, echo=echo, future=True)
        self.session_factory = sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self.write_session_factory = sessionmaker(
            self.engine.execution_options(**{WRITE_OPTION: True}),
            class_=AsyncSession,
            expire_on_commit=False,
        )

        if self.engine.dialect.name == "sqlite":
            _install_sqlite_pragmas(self.engine, busy_timeout_ms)

    async def init(self) -> None:
        """Create tables that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.info("Database initialized at %s", self.engine.url.render_as_string(hide_password=True))

    async def dispose(self) -> None:
        """Close every pooled connection."""
        await self.engine.dispose()

    def session(self) -> AsyncSession:
        """Open a read session; callers scope it with ``async with``."""
        return self.session_factory()

    def writer(self) -> AsyncSession:
        """Open a session whose transactions take the write lock up front.

        Use it for every ``session.begin()`` block that writes. Read-only
        sessions from :meth:`session` begin deferred and never wait on a
        writer.
        """
        return self.write_session_factory()


def _install_sqlite_pragmas(engine: AsyncEngine, busy_timeout_ms: int) -> None:
    """Enable write-ahead logging and a busy timeout on every new connection.

    Connections checked out through the writer engine open their
    transactions with ``BEGIN IMMEDIATE`` so concurrent writers queue on
    the database lock for up to the busy timeout. All others use a plain
    deferred ``BEGIN``.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record) -> None:
        # Hand transaction control to the "begin" hook below
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn) -> None:
        if conn.get_execution_options().get(WRITE_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")
