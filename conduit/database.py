from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from conduit.cache import cache
from conduit.config import settings
from conduit.middleware import install_query_counter


def _engine_options(url: str) -> dict:
    # Pool sizing only applies to server databases; SQLite uses its own pool.
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_pre_ping": True,
    }


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **_engine_options(settings.DATABASE_URL),
)

# Feeds X-Query-Count; the test engine registers its own.
install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db():
    """
    One session per request.  Services flush; this dependency owns the
    commit, and any exception (including the engine's typed errors)
    rolls the whole unit of work back.  Cache keys the request marked
    stale are dropped only once the commit has gone through.
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        await cache.apply_invalidations(session)
