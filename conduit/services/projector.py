"""
Projection of raw rows into viewer-relative view models.

This is the only place where ``following`` and ``favorited`` end up in a
response.  Batches resolve the follow graph once for all distinct
authors; ``favorited`` is read from the row, where the feed query already
scoped it to the viewer.
"""
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from conduit.models import Comment, User
from conduit.services import follow_graph, tag_codec
from conduit.services.feed import ArticleRow


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _author_block(username: str, bio: str | None, image: str | None, following: bool) -> dict:
    return {
        "username": username,
        "bio": bio or "",
        "image": image or "",
        "following": following,
    }


def _article_view(row: ArticleRow, following: bool) -> dict:
    return {
        "slug": row.slug,
        "title": row.title,
        "description": row.description,
        "body": row.body,
        "tagList": tag_codec.decode(row.tag_list),
        "createdAt": _iso(row.created_at),
        "updatedAt": _iso(row.updated_at),
        "favorited": row.favorited,
        "favoritesCount": row.favorites_count,
        "author": _author_block(row.author_username, row.author_bio, row.author_image, following),
    }


async def project_articles(
    db: AsyncSession, rows: Sequence[ArticleRow], viewer_id: int | None
) -> list[dict]:
    following = await follow_graph.resolve_many(db, viewer_id, {row.author_id for row in rows})
    return [_article_view(row, following[row.author_id]) for row in rows]


async def project_article(db: AsyncSession, row: ArticleRow, viewer_id: int | None) -> dict:
    return (await project_articles(db, [row], viewer_id))[0]


def profile_view(user: User, following: bool) -> dict:
    return {
        "username": user.username,
        "bio": user.bio,
        "image": user.image,
        "following": following,
    }


async def project_profile(db: AsyncSession, user: User, viewer_id: int | None) -> dict:
    return profile_view(user, await follow_graph.resolve_one(db, viewer_id, user.id))


def user_view(user: User, token: str | None = None) -> dict:
    """The authenticated user's own account, as returned by /user and login."""
    return {
        "email": user.email,
        "token": token,
        "username": user.username,
        "bio": user.bio,
        "image": user.image,
    }


async def project_comments(
    db: AsyncSession, comments: Sequence[Comment], viewer_id: int | None
) -> list[dict]:
    """Comments must have ``author`` loaded."""
    following = await follow_graph.resolve_many(db, viewer_id, {c.author_id for c in comments})
    return [
        {
            "id": comment.id,
            "createdAt": _iso(comment.created_at),
            "updatedAt": _iso(comment.updated_at),
            "body": comment.body,
            "author": profile_view(comment.author, following[comment.author_id]),
        }
        for comment in comments
    ]
