"""
Favorite ledger: the (user, article) favorite relation and the
denormalized ``articles.favorites_count`` kept in lockstep with it.

Each (user, article) pair is either *not favorited* or *favorited*;
``favorite`` and ``unfavorite`` are the only transitions and calling the
wrong one for the current state raises ``ConflictError``.

The counter is never read into Python, incremented and written back.
It is changed with ``favorites_count = favorites_count ± 1`` inside the
same transaction as the relation-row INSERT/DELETE, so concurrent
favorites from different users cannot lose an update.  Concurrent calls
for the *same* pair are settled by the unique constraint on
``favorites(user_id, article_id)``: the loser gets the conflict.
"""
import logging

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.errors import ConflictError
from conduit.models import Article, Favorite

logger = logging.getLogger(__name__)


async def is_favorited(db: AsyncSession, viewer_id: int | None, article_id: int) -> bool:
    if viewer_id is None:
        return False
    result = await db.execute(
        select(Favorite.id).where(
            Favorite.user_id == viewer_id,
            Favorite.article_id == article_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def _shift_counter(db: AsyncSession, article_id: int, delta: int) -> int:
    # updated_at is pinned so a favorite does not count as an edit.
    await db.execute(
        update(Article)
        .where(Article.id == article_id)
        .values(
            favorites_count=Article.favorites_count + delta,
            updated_at=Article.updated_at,
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(select(Article.favorites_count).where(Article.id == article_id))
    return result.scalar_one()


async def favorite(db: AsyncSession, user_id: int, article_id: int) -> int:
    """Favorite *article_id* for *user_id* and return the new counter value."""
    if await is_favorited(db, user_id, article_id):
        raise ConflictError("favorite.already_favorited")

    db.add(Favorite(user_id=user_id, article_id=article_id))
    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError("favorite.already_favorited") from exc

    count = await _shift_counter(db, article_id, +1)
    logger.info("User %s favorited article %s (count=%d)", user_id, article_id, count)
    return count


async def unfavorite(db: AsyncSession, user_id: int, article_id: int) -> int:
    """Remove the favorite and return the new counter value."""
    result = await db.execute(
        delete(Favorite).where(
            Favorite.user_id == user_id,
            Favorite.article_id == article_id,
        )
    )
    if result.rowcount == 0:
        raise ConflictError("favorite.not_favorited")

    count = await _shift_counter(db, article_id, -1)
    logger.info("User %s unfavorited article %s (count=%d)", user_id, article_id, count)
    return count
