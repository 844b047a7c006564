"""Database engines and sessions.

- Read-only list endpoints use AsyncSession (aiosqlite / asyncpg).
- Writes that must be atomic (sync batches, profile saves, ledger appends),
  Celery tasks, scripts and Alembic use the sync Session (pysqlite / psycopg).
"""

from __future__ import annotations

from typing import AsyncGenerator, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from .config import settings


def _is_sqlite(url: URL) -> bool:
    return url.drivername.startswith("sqlite")


def _with_driver(url: URL, drivername: str) -> URL:
    """Return a copy of URL with a different drivername."""
    return url.set(drivername=drivername)


def _pool_kwargs() -> dict:
    return {
        "pool_size": max(1, int(settings.db_pool_size)),
        "max_overflow": max(0, int(settings.db_max_overflow)),
        "pool_timeout": max(1, int(settings.db_pool_timeout_s)),
        "pool_recycle": max(0, int(settings.db_pool_recycle_s)),
    }


def enable_sqlite_savepoints(engine) -> None:
    """
    Let SQLAlchemy own BEGIN on pysqlite so SAVEPOINTs nest inside the batch
    transaction instead of committing on RELEASE.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


raw_url: URL = make_url(settings.database_url)

# ----------------------------
# Sync engine/session
# ----------------------------

if _is_sqlite(raw_url):
    # NullPool so each thread gets its own connection; timeout is seconds at the driver level.
    timeout_s = max(0.0, float(settings.sqlite_busy_timeout_ms) / 1000.0)
    sync_engine = create_engine(
        raw_url,
        connect_args={"check_same_thread": False, "timeout": timeout_s},
        poolclass=NullPool,
    )

    @event.listens_for(sync_engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record):
        """
        - WAL: concurrent readers while a sync batch is being written
        - busy_timeout: wait for locks instead of failing immediately
        """
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA synchronous=NORMAL;")
            cursor.execute(f"PRAGMA busy_timeout={int(settings.sqlite_busy_timeout_ms)};")
        finally:
            cursor.close()

    enable_sqlite_savepoints(sync_engine)
else:
    # Plain postgresql://... uses psycopg for sync work.
    sync_url = raw_url
    if sync_url.drivername == "postgresql":
        sync_url = _with_driver(sync_url, "postgresql+psycopg")
    sync_engine = create_engine(sync_url, pool_pre_ping=True, **_pool_kwargs())

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=sync_engine)

# ----------------------------
# Async engine/session (API reads)
# ----------------------------

async_url = raw_url
async_engine_kwargs: dict = {"pool_pre_ping": True}
if _is_sqlite(async_url):
    if async_url.drivername == "sqlite":
        async_url = _with_driver(async_url, "sqlite+aiosqlite")
else:
    if async_url.drivername == "postgresql":
        async_url = _with_driver(async_url, "postgresql+asyncpg")
    async_engine_kwargs.update(_pool_kwargs())

async_engine = create_async_engine(async_url, **async_engine_kwargs)
AsyncSessionLocal = async_sessionmaker(async_engine, expire_on_commit=False, autoflush=False)

# ----------------------------
# Helpers
# ----------------------------


def init_db():
    """
    Create tables for SQLite (local dev, tests).

    Postgres schema is managed via Alembic.
    """
    if not _is_sqlite(raw_url):
        return
    from .models import Base
    Base.metadata.create_all(bind=sync_engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an AsyncSession."""
    async with AsyncSessionLocal() as session:
        yield session


def get_sync_db() -> Generator:
    """Dependency that yields a sync DB session (transactional writes)."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
