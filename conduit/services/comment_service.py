"""
Comment service: flat (unthreaded) comments on an article.

A comment can be deleted only by the user who wrote it; owning the
article grants nothing.  Listing resolves ``following`` for every
distinct comment author in one batched lookup.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from conduit.errors import ForbiddenError, NotFoundError
from conduit.models import Article, Comment
from conduit.schemas import CommentCreate
from conduit.services import projector

logger = logging.getLogger(__name__)


async def _article_id(db: AsyncSession, slug: str) -> int:
    result = await db.execute(select(Article.id).where(Article.slug == slug))
    article_id = result.scalar_one_or_none()
    if article_id is None:
        raise NotFoundError("article.not_found")
    return article_id


def _with_author():
    # populate_existing refreshes server defaults (created_at) on
    # instances already in the identity map after a flush.
    return (
        select(Comment)
        .options(joinedload(Comment.author))
        .execution_options(populate_existing=True)
    )


async def add_comment(
    db: AsyncSession, slug: str, data: CommentCreate, author_id: int
) -> dict:
    article_id = await _article_id(db, slug)

    comment = Comment(body=data.body, author_id=author_id, article_id=article_id)
    db.add(comment)
    await db.flush()

    result = await db.execute(_with_author().where(Comment.id == comment.id))
    comment = result.unique().scalar_one()
    logger.info("User %s commented on article %r", author_id, slug)

    # The author is the viewer, so following is always False here.
    views = await projector.project_comments(db, [comment], author_id)
    return {"comment": views[0]}


async def list_comments(db: AsyncSession, slug: str, viewer_id: int | None = None) -> dict:
    """Comments on *slug*, oldest first."""
    article_id = await _article_id(db, slug)

    q = (
        _with_author()
        .where(Comment.article_id == article_id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    )
    result = await db.execute(q)
    comments = result.unique().scalars().all()
    return {"comments": await projector.project_comments(db, comments, viewer_id)}


async def delete_comment(
    db: AsyncSession, slug: str, comment_id: int, requester_id: int
) -> None:
    article_id = await _article_id(db, slug)

    result = await db.execute(
        select(Comment).where(Comment.id == comment_id, Comment.article_id == article_id)
    )
    comment = result.scalar_one_or_none()
    if comment is None:
        raise NotFoundError("comment.not_found")
    if comment.author_id != requester_id:
        raise ForbiddenError("comment.not_author")

    await db.delete(comment)
    await db.flush()
    logger.info("User %s deleted comment %s on article %r", requester_id, comment_id, slug)
