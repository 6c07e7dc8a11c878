"""
Feed query engine: filter, sort and paginate articles into fixed-shape
raw rows.

Design notes
------------
- Rows are plain ``ArticleRow`` values selected column by column (article
  fields, the author's public fields and a viewer-scoped ``favorited``
  flag), never ORM entities.  What the response looks like is decided
  later by ``conduit.services.projector``; this module only decides what
  is fetched.
- ``favorited`` is an ``EXISTS`` sub-select evaluated in the same
  statement as the rows, so a page of N articles costs one query, not
  N + 1.
- The total is an independent ``COUNT`` over the same predicate.  Rows
  and count are two statements and may observe different snapshots
  under concurrent writes; that window is accepted.
- Ordering is ``created_at DESC, id DESC``: the id breaks ties between
  articles created within the same clock tick so that consecutive pages
  never overlap or skip.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime

from sqlalchemy import exists, false, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.config import settings
from conduit.models import Article, Favorite, User
from conduit.services.tag_codec import tag_token

# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


# Largest value a BIGINT bind parameter accepts (SQLite and asyncpg alike).
_MAX_BIND_INT = 2**63 - 1


def _non_negative(raw, default: int) -> int:
    """Parse *raw* as a non-negative integer, or return *default*."""
    if raw is None or isinstance(raw, bool):
        return default
    if isinstance(raw, int):
        value = raw
    else:
        try:
            value = int(str(raw).strip())
        except ValueError:
            return default
    return value if 0 <= value <= _MAX_BIND_INT else default


@dataclass(frozen=True)
class Page:
    limit: int = 20
    offset: int = 0

    @classmethod
    def parse(cls, limit=None, offset=None) -> Page:
        """
        Build a page from untrusted values.

        Anything that is not a non-negative integer (``"abc"``, ``"-5"``,
        ``"1.5"``) is treated as absent, and so is a value too large to
        bind as a 64-bit integer.  ``limit`` is additionally capped
        at ``settings.MAX_PAGE_SIZE``.
        """
        return cls(
            limit=min(_non_negative(limit, settings.DEFAULT_PAGE_SIZE), settings.MAX_PAGE_SIZE),
            offset=_non_negative(offset, 0),
        )


@dataclass(frozen=True)
class FeedFilter:
    """Conjunctive feed filters; empty strings count as absent."""

    tag: str | None = None
    author: str | None = None
    favorited: str | None = None


@dataclass
class ArticleRow:
    id: int
    slug: str
    title: str
    description: str
    body: str
    tag_list: str
    favorites_count: int
    created_at: datetime
    updated_at: datetime
    author_id: int
    author_username: str
    author_bio: str | None
    author_image: str | None
    favorited: bool = False

    def to_cache(self) -> dict:
        """
        JSON-safe cache form.  ``favorited`` is per viewer and
        ``favorites_count`` moves on every favorite, so neither is stored;
        both are read back with :func:`fetch_live`.
        """
        data = asdict(self)
        data.pop("favorited")
        data.pop("favorites_count")
        data["created_at"] = self.created_at.isoformat()
        data["updated_at"] = self.updated_at.isoformat()
        return data

    @classmethod
    def from_cache(cls, data: dict) -> ArticleRow:
        return cls(
            **{
                **data,
                "favorites_count": 0,
                "created_at": datetime.fromisoformat(data["created_at"]),
                "updated_at": datetime.fromisoformat(data["updated_at"]),
            }
        )


@dataclass
class FeedResult:
    rows: list[ArticleRow] = field(default_factory=list)
    total: int = 0


# ---------------------------------------------------------------------------
# Query building
# ---------------------------------------------------------------------------


def _favorited_column(viewer_id: int | None):
    if viewer_id is None:
        return false().label("favorited")
    return (
        exists()
        .where(Favorite.article_id == Article.id, Favorite.user_id == viewer_id)
        .label("favorited")
    )


def _row_select(viewer_id: int | None):
    return select(
        Article.id,
        Article.slug,
        Article.title,
        Article.description,
        Article.body,
        Article.tag_list,
        Article.favorites_count,
        Article.created_at,
        Article.updated_at,
        Article.author_id,
        User.username.label("author_username"),
        User.bio.label("author_bio"),
        User.image.label("author_image"),
        _favorited_column(viewer_id),
    ).join(User, User.id == Article.author_id)


def _to_row(mapping) -> ArticleRow:
    data = dict(mapping)
    data["favorited"] = bool(data["favorited"])
    return ArticleRow(**data)


def _criteria(feed_filter: FeedFilter, favorited_by_id: int | None) -> list:
    criteria = []
    if feed_filter.tag:
        criteria.append(Article.tag_list.contains(tag_token(feed_filter.tag), autoescape=True))
    if feed_filter.author:
        criteria.append(User.username == feed_filter.author)
    if favorited_by_id is not None:
        criteria.append(
            exists().where(
                Favorite.article_id == Article.id,
                Favorite.user_id == favorited_by_id,
            )
        )
    return criteria


async def _user_id_for(db: AsyncSession, username: str) -> int | None:
    result = await db.execute(select(User.id).where(User.username == username))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def list_rows(
    db: AsyncSession,
    feed_filter: FeedFilter,
    page: Page,
    viewer_id: int | None = None,
) -> FeedResult:
    """
    Return one page of rows matching *feed_filter* plus the total count.

    An unknown ``favorited`` username matches nothing and short-circuits
    before the count and row queries.
    """
    favorited_by_id = None
    if feed_filter.favorited:
        favorited_by_id = await _user_id_for(db, feed_filter.favorited)
        if favorited_by_id is None:
            return FeedResult()

    criteria = _criteria(feed_filter, favorited_by_id)

    count_q = (
        select(func.count(Article.id))
        .select_from(Article)
        .join(User, User.id == Article.author_id)
        .where(*criteria)
    )
    total: int = (await db.execute(count_q)).scalar_one()

    rows_q = (
        _row_select(viewer_id)
        .where(*criteria)
        .order_by(Article.created_at.desc(), Article.id.desc())
        .offset(page.offset)
        .limit(page.limit)
    )
    result = await db.execute(rows_q)
    return FeedResult(rows=[_to_row(m) for m in result.mappings()], total=total)


async def fetch_row(
    db: AsyncSession,
    *,
    slug: str | None = None,
    article_id: int | None = None,
    viewer_id: int | None = None,
) -> ArticleRow | None:
    """Single article in the same raw shape as a feed row, or None."""
    q = _row_select(viewer_id)
    if slug is not None:
        q = q.where(Article.slug == slug)
    if article_id is not None:
        q = q.where(Article.id == article_id)
    result = await db.execute(q)
    mapping = result.mappings().one_or_none()
    return _to_row(mapping) if mapping is not None else None


async def fetch_live(
    db: AsyncSession, article_id: int, viewer_id: int | None = None
) -> tuple[int, bool] | None:
    """``(favorites_count, favorited)`` for one article in one statement, or None."""
    q = select(Article.favorites_count, _favorited_column(viewer_id)).where(
        Article.id == article_id
    )
    row = (await db.execute(q)).one_or_none()
    if row is None:
        return None
    return row[0], bool(row[1])
