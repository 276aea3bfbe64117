from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from forumcore.config import DATABASE_URL, DATABASE_ECHO
from typing import AsyncGenerator


def make_engine(url: str, echo: bool = False):
    url = url.replace("postgresql://", "postgresql+asyncpg://")
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}

    eng = create_async_engine(url, echo=echo, future=True, connect_args=connect_args)

    if url.startswith("sqlite"):
        in_memory = ":memory:" in url

        # SQLite ships with FK enforcement off; production Postgres always enforces.
        # The driver's own BEGIN handling breaks SAVEPOINT, so we emit BEGIN ourselves.
        @event.listens_for(eng.sync_engine, "connect")
        def _sqlite_connect(dbapi_conn, _record):
            dbapi_conn.isolation_level = None
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if not in_memory:
                # an open read (e.g. the auth lookup) must not block a write
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        @event.listens_for(eng.sync_engine, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN")

    return eng


def make_session_factory(eng) -> sessionmaker:
    return sessionmaker(eng, class_=AsyncSession, expire_on_commit=False)


engine = make_engine(DATABASE_URL, echo=DATABASE_ECHO)

AsyncSessionLocal = make_session_factory(engine)
Base = declarative_base()

# Dependency for FastAPI routes
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
