"""
Test infrastructure for the Conduit API.

Strategy
--------
- SQLite in-memory via aiosqlite removes the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool makes every session share the one in-memory connection;
  a second connection would see an empty database.
- The app's get_db dependency is overridden so every request uses the
  test session factory.
- Tables are created before and dropped after each test.
- Tests that need separate connections (uncommitted writes, concurrent
  sessions) use the file_sessions fixture: a SQLite file with NullPool.
- The Redis cache is disabled by setting cache._redis = None; the
  CacheManager treats that as "no cache", so the database path is always
  exercised.
- bcrypt rounds are lowered through the environment before any conduit
  import so registration stays fast.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool, StaticPool  # noqa: E402

from conduit.cache import cache  # noqa: E402
from conduit.database import Base, get_db  # noqa: E402
from conduit.main import app  # noqa: E402
from conduit.middleware import install_query_counter  # noqa: E402

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Dependency override
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        await cache.apply_invalidations(session)


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    cache._redis = None
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live AsyncSession for service-level tests."""
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def file_sessions(tmp_path):
    """
    Session factory over a SQLite file with NullPool.

    Every session opens its own connection, so one session's uncommitted
    writes stay invisible to the others and sessions can run concurrently.
    Busy writers wait on the file lock instead of failing.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'conduit.db'}",
        connect_args={"timeout": 30},
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def query_counter():
    """
    Count SQL statements sent to the test engine.

    Yields a one-element list; ``counter[0]`` is the running total.
    Reset it to 0 before the block being measured.
    """
    counter = [0]

    def _count(conn, cursor, statement, parameters, context, executemany):
        counter[0] += 1

    event.listen(engine_test.sync_engine, "before_cursor_execute", _count)
    yield counter
    event.remove(engine_test.sync_engine, "before_cursor_execute", _count)


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def register(async_client: AsyncClient):
    """
    Factory fixture: ``await register("alice")`` creates a user through the
    API and returns the ``Authorization`` headers for that user.
    """

    async def _register(username: str) -> dict[str, str]:
        resp = await async_client.post("/api/v1/users", json={
            "user": {
                "username": username,
                "email": f"{username}@example.com",
                "password": "password123",
            },
        })
        assert resp.status_code == 201, resp.text
        return {"Authorization": f"Token {resp.json()['user']['token']}"}

    return _register
