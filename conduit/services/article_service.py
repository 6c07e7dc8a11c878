"""
Article service: the operation surface for the Article aggregate.

Design notes
------------
- Every read path ends in ``projector.project_articles``: rows come from
  ``feed`` (list and single lookups share one row shape), viewer-relative
  flags are resolved in batch, and the projector builds the response.
- Single-article reads go through the cache-aside pattern (Redis, then
  database) for the stable part of the row only.  ``favoritesCount`` and
  ``favorited`` come from one fresh statement on every read, and
  ``following`` from the batched follow lookup.
- Mutations only mark cache keys stale; ``get_db`` drops them after the
  commit.
- Mutations re-read the row after flushing instead of serializing the
  ORM instance, so server-generated timestamps and the counter are
  exactly what the database holds.
- Service functions flush but do not commit; the transaction boundary is
  owned by the ``get_db`` dependency in the router layer.
"""
import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.cache import article_key, cache
from conduit.config import settings
from conduit.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from conduit.models import Article, Comment, Favorite
from conduit.schemas import ArticleCreate, ArticleUpdate
from conduit.services import favorites, feed, projector, slugs, tag_codec
from conduit.services.feed import ArticleRow, FeedFilter, Page

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = ("title", "description", "body")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _load_owned(db: AsyncSession, slug: str, requester_id: int) -> Article:
    result = await db.execute(select(Article).where(Article.slug == slug))
    article = result.scalar_one_or_none()
    if article is None:
        raise NotFoundError("article.not_found")
    if article.author_id != requester_id:
        raise ForbiddenError("article.not_author")
    return article


async def _article_id(db: AsyncSession, slug: str) -> int:
    result = await db.execute(select(Article.id).where(Article.slug == slug))
    article_id = result.scalar_one_or_none()
    if article_id is None:
        raise NotFoundError("article.not_found")
    return article_id


async def _present(db: AsyncSession, article_id: int, viewer_id: int | None) -> dict:
    row = await feed.fetch_row(db, article_id=article_id, viewer_id=viewer_id)
    return {"article": await projector.project_article(db, row, viewer_id)}


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def list_articles(
    db: AsyncSession,
    feed_filter: FeedFilter,
    page: Page,
    viewer_id: int | None = None,
) -> dict:
    """
    Filtered, paginated feed.

    Three statements at most regardless of page size: COUNT, the rows
    (with ``favorited`` computed inline) and one batched follow lookup.
    A ``favorited`` filter adds one username lookup.
    """
    result = await feed.list_rows(db, feed_filter, page, viewer_id)
    return {
        "articles": await projector.project_articles(db, result.rows, viewer_id),
        "articlesCount": result.total,
    }


async def get_article(db: AsyncSession, slug: str, viewer_id: int | None = None) -> dict:
    """
    One article by slug.  A cache miss costs one viewer-scoped row query;
    a hit costs one query for the counter and the ``favorited`` flag.
    """
    key = article_key(slug)
    cached = await cache.get(key)
    if cached:
        row = ArticleRow.from_cache(cached)
        live = await feed.fetch_live(db, row.id, viewer_id)
        if live is None:
            raise NotFoundError("article.not_found")
        row.favorites_count, row.favorited = live
    else:
        row = await feed.fetch_row(db, slug=slug, viewer_id=viewer_id)
        if row is None:
            raise NotFoundError("article.not_found")
        await cache.set(key, row.to_cache(), ttl=settings.CACHE_TTL_DETAIL)
    return {"article": await projector.project_article(db, row, viewer_id)}


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

async def create_article(db: AsyncSession, data: ArticleCreate, author_id: int) -> dict:
    """
    Create an article owned by *author_id*.

    The slug is derived from the title; a title whose slug is already in
    use is a conflict (no suffixing).
    """
    slug = await slugs.allocate(db, data.title)

    article = Article(
        slug=slug,
        title=data.title,
        description=data.description,
        body=data.body,
        tag_list=tag_codec.encode(data.tag_list),
        author_id=author_id,
    )
    db.add(article)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError("article.title_in_use") from exc

    logger.info("User %s created article %r", author_id, slug)
    return await _present(db, article.id, author_id)


async def update_article(
    db: AsyncSession, slug: str, data: ArticleUpdate, requester_id: int
) -> dict:
    """
    Partially update an article owned by *requester_id*.

    Empty strings count as "not supplied".  The slug is recomputed only
    when a title is supplied, and renaming onto the article's own slug
    is allowed.
    """
    changes = {name: getattr(data, name) for name in _UPDATABLE_FIELDS if getattr(data, name)}
    if not changes:
        raise InvalidInputError("article.no_fields")

    article = await _load_owned(db, slug, requester_id)
    old_slug = article.slug

    if "title" in changes:
        article.slug = await slugs.reallocate(db, changes["title"], old_slug)
    for name, value in changes.items():
        setattr(article, name, value)

    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError("article.title_in_use") from exc

    cache.invalidate_article(db, old_slug, article.slug)
    logger.info("User %s updated article %r -> %r", requester_id, old_slug, article.slug)
    return await _present(db, article.id, requester_id)


async def delete_article(db: AsyncSession, slug: str, requester_id: int) -> None:
    """Delete the article together with its comments and favorites."""
    article = await _load_owned(db, slug, requester_id)

    await db.execute(delete(Comment).where(Comment.article_id == article.id))
    await db.execute(delete(Favorite).where(Favorite.article_id == article.id))
    await db.delete(article)
    await db.flush()

    cache.invalidate_article(db, slug)
    logger.info("User %s deleted article %r", requester_id, slug)


async def favorite_article(db: AsyncSession, slug: str, user_id: int) -> dict:
    article_id = await _article_id(db, slug)
    await favorites.favorite(db, user_id, article_id)
    return await _present(db, article_id, user_id)


async def unfavorite_article(db: AsyncSession, slug: str, user_id: int) -> dict:
    article_id = await _article_id(db, slug)
    await favorites.unfavorite(db, user_id, article_id)
    return await _present(db, article_id, user_id)
