"""
Slug allocation for article titles.

Slugs are derived, never chosen: the same title always yields the same
slug, and a collision with another article is reported as a conflict
instead of being disambiguated with a suffix.

The existence check and the eventual INSERT/UPDATE are separate
statements.  Two concurrent requests for the same title can both pass
the check; the unique index on ``articles.slug`` then rejects the second
write, which the article service reports as the same conflict.
"""
import re
import unicodedata

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.errors import ConflictError, InvalidInputError
from conduit.models import Article

_SLUG_SEPARATOR_RE = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """
    Return the strict, URL-safe slug for *text*.

    Accented letters are folded to ASCII, every run of characters outside
    ``[a-z0-9]`` becomes a single ``-`` and separators at either end are
    trimmed.
    """
    folded = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return _SLUG_SEPARATOR_RE.sub("-", folded.lower()).strip("-")


def _candidate(title: str) -> str:
    slug = slugify(title)
    if not slug:
        raise InvalidInputError("article.title_invalid")
    return slug


async def _slug_taken(db: AsyncSession, slug: str) -> bool:
    result = await db.execute(select(Article.id).where(Article.slug == slug).limit(1))
    return result.scalar_one_or_none() is not None


async def allocate(db: AsyncSession, title: str) -> str:
    """Slug for a new article; ``ConflictError`` if any article already owns it."""
    slug = _candidate(title)
    if await _slug_taken(db, slug):
        raise ConflictError("article.title_in_use")
    return slug


async def reallocate(db: AsyncSession, title: str, current_slug: str) -> str:
    """
    Slug for an article being renamed from *current_slug*.

    A title that maps back onto the article's own slug is a no-op rename
    and needs no lookup.
    """
    slug = _candidate(title)
    if slug == current_slug:
        return slug
    if await _slug_taken(db, slug):
        raise ConflictError("article.title_in_use")
    return slug
