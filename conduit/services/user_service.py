"""
User service: registration, login, the caller's own account, public
profiles, and the follow / unfollow operations.

Username and email uniqueness is checked up front so the caller gets a
precise message; the unique constraints remain the backstop for races
and are reported the same way.
"""
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.cache import cache
from conduit.errors import ConflictError, NotFoundError, UnauthenticatedError
from conduit.models import User
from conduit.schemas import UserLogin, UserRegister, UserUpdate
from conduit.security import create_access_token, hash_password, verify_password
from conduit.services import follow_graph, projector

logger = logging.getLogger(__name__)

# Profile fields that are embedded in cached article rows.
_PUBLIC_FIELDS = frozenset({"username", "bio", "image"})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _get_by(db: AsyncSession, column, value) -> User | None:
    result = await db.execute(select(User).where(column == value))
    return result.scalar_one_or_none()


async def _require_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("user.not_found")
    return user


async def _require_username(db: AsyncSession, username: str) -> User:
    user = await _get_by(db, User.username, username)
    if user is None:
        raise NotFoundError("user.not_found")
    return user


def _with_token(user: User) -> dict:
    return {"user": projector.user_view(user, create_access_token(user.id, user.email))}


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------

async def register(db: AsyncSession, data: UserRegister) -> dict:
    if await _get_by(db, User.email, data.email) is not None:
        raise ConflictError("user.email_in_use")
    if await _get_by(db, User.username, data.username) is not None:
        raise ConflictError("user.username_taken")

    user = User(
        username=data.username,
        email=data.email,
        password_hash=hash_password(data.password),
        bio=None,
        image=None,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError("user.username_taken") from exc

    logger.info("Registered user %s (%r)", user.id, user.username)
    return _with_token(user)


async def login(db: AsyncSession, data: UserLogin) -> dict:
    user = await _get_by(db, User.email, data.email)
    if user is None or not verify_password(data.password, user.password_hash):
        raise UnauthenticatedError("auth.invalid_credentials")
    return _with_token(user)


async def get_current_user(db: AsyncSession, user_id: int) -> dict:
    return _with_token(await _require_user(db, user_id))


async def update_user(db: AsyncSession, user_id: int, data: UserUpdate) -> dict:
    """
    Apply the fields present in the payload (``exclude_unset``).

    Changing username, bio or image clears cached article rows, which
    embed the author's public profile.
    """
    user = await _require_user(db, user_id)
    changes = data.model_dump(exclude_unset=True)

    if changes.get("email") and changes["email"] != user.email:
        if await _get_by(db, User.email, changes["email"]) is not None:
            raise ConflictError("user.email_in_use")
    if changes.get("username") and changes["username"] != user.username:
        if await _get_by(db, User.username, changes["username"]) is not None:
            raise ConflictError("user.username_taken")

    password = changes.pop("password", None)
    if password:
        user.password_hash = hash_password(password)
    for field, value in changes.items():
        # email and username are required columns; null means "leave as is"
        if value is None and field in ("email", "username"):
            continue
        setattr(user, field, value)

    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError("user.username_taken") from exc

    # Reload so server-side updated_at is present without lazy IO.
    await db.refresh(user)
    if _PUBLIC_FIELDS.intersection(changes):
        cache.invalidate_author(db)
    logger.info("User %s updated their account", user_id)
    return _with_token(user)


# ---------------------------------------------------------------------------
# Profiles and the follow graph
# ---------------------------------------------------------------------------

async def get_profile(db: AsyncSession, username: str, viewer_id: int | None = None) -> dict:
    user = await _require_username(db, username)
    return {"profile": await projector.project_profile(db, user, viewer_id)}


async def follow_user(db: AsyncSession, username: str, follower_id: int) -> dict:
    user = await _require_username(db, username)
    await follow_graph.follow(db, follower_id, user.id, user.username)
    return {"profile": projector.profile_view(user, True)}


async def unfollow_user(db: AsyncSession, username: str, follower_id: int) -> dict:
    user = await _require_username(db, username)
    await follow_graph.unfollow(db, follower_id, user.id, user.username)
    return {"profile": projector.profile_view(user, False)}
