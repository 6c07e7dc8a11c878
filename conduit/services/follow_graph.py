"""
Follow graph: "does the viewer follow this author?" for one author or a
whole result set, plus the follow / unfollow transitions.

Resolution for a set of authors is always a single
``follower_id = :viewer AND following_id IN (...)`` query, never one
lookup per author.  A viewer is never considered to follow themselves,
even if such a row exists in storage.
"""
import logging
from collections.abc import Iterable

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.errors import ConflictError, InvalidInputError
from conduit.models import Follow

logger = logging.getLogger(__name__)


async def resolve_many(
    db: AsyncSession, viewer_id: int | None, author_ids: Iterable[int]
) -> dict[int, bool]:
    """
    Map every id in *author_ids* to whether *viewer_id* follows it.

    No storage access happens when there is no viewer or when the only
    candidate is the viewer.
    """
    following = {author_id: False for author_id in author_ids}
    if viewer_id is None:
        return following

    candidates = [author_id for author_id in following if author_id != viewer_id]
    if not candidates:
        return following

    q = select(Follow.following_id).where(
        Follow.follower_id == viewer_id,
        Follow.following_id.in_(candidates),
    )
    result = await db.execute(q)
    for author_id in result.scalars():
        following[author_id] = True
    return following


async def resolve_one(db: AsyncSession, viewer_id: int | None, author_id: int) -> bool:
    return (await resolve_many(db, viewer_id, [author_id]))[author_id]


async def follow(db: AsyncSession, follower_id: int, following_id: int, username: str) -> None:
    """
    Create the ``follower -> following`` relation.

    *username* is the followed user's name, used only for the error
    message.  Following yourself is invalid; following twice conflicts.
    """
    if follower_id == following_id:
        raise InvalidInputError("follow.self")

    existing = await db.execute(
        select(Follow.id).where(
            Follow.follower_id == follower_id,
            Follow.following_id == following_id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("follow.already_following", username=username)

    db.add(Follow(follower_id=follower_id, following_id=following_id))
    try:
        await db.flush()
    except IntegrityError as exc:
        # Lost a race against a concurrent follow of the same pair.
        raise ConflictError("follow.already_following", username=username) from exc
    logger.info("User %s followed user %s", follower_id, following_id)


async def unfollow(db: AsyncSession, follower_id: int, following_id: int, username: str) -> None:
    """Remove the relation; ``ConflictError`` when it does not exist."""
    result = await db.execute(
        delete(Follow).where(
            Follow.follower_id == follower_id,
            Follow.following_id == following_id,
        )
    )
    if result.rowcount == 0:
        raise ConflictError("follow.not_following", username=username)
    logger.info("User %s unfollowed user %s", follower_id, following_id)
