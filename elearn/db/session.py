"""Async engine / session factory construction and the request-scoped session dependency."""
from collections.abc import AsyncIterator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# seconds a connection waits for another writer before "database is locked"
SQLITE_BUSY_TIMEOUT = 30


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves.
    # IMMEDIATE takes the write lock up front so concurrent writers wait on the
    # busy timeout instead of failing a SHARED -> RESERVED upgrade.
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = SQLITE_BUSY_TIMEOUT
    engine = create_async_engine(database_url, echo=echo, future=True, connect_args=connect_args)
    if database_url.startswith("sqlite"):
        _enable_sqlite_savepoints(engine)
    return engine


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """One session per request, taken from the factory built in create_app()."""
    async with request.app.state.sessionmaker() as db:
        yield db
