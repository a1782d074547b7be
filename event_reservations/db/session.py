"""
Async engine and session factory.

Nothing in the service layer reaches for a module-level connection: every
service function receives the AsyncSession it should work in. The FastAPI
layer hands one out per request through get_db(); tests build their own
engine with build_engine() and override the dependency.
"""

from typing import AsyncGenerator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from event_reservations.core.config import get_settings


def build_engine(url: str, *, lock_timeout_ms: Optional[int] = None, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for PostgreSQL (production) or SQLite (tests).

    SQLite has no row locks, so every transaction is opened with
    BEGIN IMMEDIATE: the database write lock is taken up front and concurrent
    transactions serialize exactly like SELECT ... FOR UPDATE would on one
    event row. The sqlite busy timeout bounds the wait.
    """
    settings = get_settings()
    timeout_ms = lock_timeout_ms if lock_timeout_ms is not None else settings.LOCK_TIMEOUT_MS

    if url.startswith("sqlite"):
        engine = create_async_engine(
            url,
            echo=echo,
            connect_args={"timeout": timeout_ms / 1000},
        )
        _use_immediate_transactions(engine)
        return engine

    return create_async_engine(
        url,
        echo=echo,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )


def _use_immediate_transactions(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself instead of the driver's implicit one
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


_engine: Optional[AsyncEngine] = None
_sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    global _engine, _sessionmaker
    if _sessionmaker is None:
        _engine = build_engine(get_settings().DATABASE_URL)
        _sessionmaker = build_sessionmaker(_engine)
    return _sessionmaker


async def dispose_engine() -> None:
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessionmaker = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one session per request.

    Services open and commit their own unit of work, so the session is only
    closed here; anything left uncommitted is rolled back on close.
    """
    async with get_sessionmaker()() as session:
        yield session
