import os

# must be in place before forumcore.config is imported
os.environ["SECRET_KEY"] = "test-secret-key-for-forumcore-0123456789abcdef"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient

from forumcore.database import Base, make_engine, make_session_factory
from forumcore.models.forum_model import Category, Tag
from forumcore.models.user_model import User
from forumcore.services.association_manager import AssociationManager
from forumcore.services.cascade_deleter import CascadeDeleter
from forumcore.services.like_toggle import LikeToggle
from forumcore.services.thread_reader import ThreadReader
from forumcore.services.thread_writer import ThreadWriter
from forumcore.store import ForumStore


@pytest.fixture
async def engine(tmp_path):
    eng = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'forum_test.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def store(session_factory):
    return ForumStore(session_factory, timeout=5.0)


@pytest.fixture
def reader(store):
    return ThreadReader(store)


@pytest.fixture
def writer(store):
    return ThreadWriter(store)


@pytest.fixture
def likes(store):
    return LikeToggle(store)


@pytest.fixture
def tags(store):
    return AssociationManager(store)


@pytest.fixture
def deleter(store):
    return CascadeDeleter(store)


@pytest.fixture
async def seed(session_factory):
    """Four users, two categories, three tags."""
    async with session_factory() as session:
        alice = User(username="alice", email="alice@example.com")
        bob = User(username="bob", email="bob@example.com")
        carol = User(username="carol", email="carol@example.com")
        admin = User(username="mod", email="mod@example.com", role="ADMIN")
        general = Category(name="General", slug="general")
        help_ = Category(name="Help", slug="help")
        python = Tag(name="Python", slug="python")
        asyncio_ = Tag(name="Asyncio", slug="asyncio")
        sql = Tag(name="SQL", slug="sql")
        session.add_all([alice, bob, carol, admin, general, help_, python, asyncio_, sql])
        await session.commit()

        return SimpleNamespace(
            alice=alice.id,
            bob=bob.id,
            carol=carol.id,
            admin=admin.id,
            general=general.id,
            help=help_.id,
            python=python.id,
            asyncio=asyncio_.id,
            sql=sql.id,
        )


# ------------------------------
# HTTP
# ------------------------------
@pytest.fixture
async def client(session_factory, store):
    from forumcore.database import get_async_session
    from forumcore.deps.forum import get_store
    from forumcore.main import app

    async def override_get_async_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_store] = lambda: store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


