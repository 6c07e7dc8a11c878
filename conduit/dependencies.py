import logging

from fastapi import Query, Security
from fastapi.security import APIKeyHeader

from conduit.errors import UnauthenticatedError
from conduit.security import decode_access_token
from conduit.services.feed import Page

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Identity provider
# ---------------------------------------------------------------------------

# Both "Token <jwt>" (RealWorld clients) and "Bearer <jwt>" are accepted.
_AUTH_SCHEMES = frozenset({"token", "bearer"})

_authorization_header = APIKeyHeader(name="Authorization", auto_error=False)


def _extract_token(authorization: str) -> str | None:
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() not in _AUTH_SCHEMES or not token.strip():
        return None
    return token.strip()


async def get_optional_user_id(
    authorization: str | None = Security(_authorization_header),
) -> int | None:
    """
    Viewer id for endpoints that also serve anonymous callers.

    A missing header means anonymous.  An unusable token is logged and
    also treated as anonymous, so a stale client token never blocks a
    public read.
    """
    if not authorization:
        return None
    token = _extract_token(authorization)
    user_id = decode_access_token(token) if token else None
    if user_id is None:
        logger.warning("Ignoring invalid token on optional-auth endpoint")
    return user_id


async def get_current_user_id(
    authorization: str | None = Security(_authorization_header),
) -> int:
    """Authenticated user id; raises ``UnauthenticatedError`` otherwise."""
    if not authorization:
        raise UnauthenticatedError("auth.authentication_required")
    token = _extract_token(authorization)
    user_id = decode_access_token(token) if token else None
    if user_id is None:
        logger.warning("Rejected invalid token")
        raise UnauthenticatedError("auth.invalid_token")
    return user_id


# ---------------------------------------------------------------------------
# Feed pagination
# ---------------------------------------------------------------------------

class FeedPagination:
    """
    Reusable FastAPI dependency that reads ``limit`` / ``offset`` as raw
    strings and normalizes them through :meth:`Page.parse`.

    Values are deliberately not typed as ``int`` here: a non-numeric or
    negative value must fall back to the default instead of producing a
    422, so validation is left to the feed engine.

    Usage in a router::

        @router.get("/articles")
        async def list_articles(pagination: FeedPagination = Depends()):
            ...
    """

    def __init__(
        self,
        limit: str | None = Query(
            None,
            description="Maximum number of articles to return (default 20, max 100).",
        ),
        offset: str | None = Query(
            None,
            description="Number of articles to skip (default 0).",
        ),
    ) -> None:
        self.page = Page.parse(limit, offset)
