"""
Cache-aside behaviour of single-article reads, using an in-memory stand-in
for the Redis client so no server is needed.
"""
import fnmatch

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from conduit.cache import article_key, cache
from conduit.models import Article, Favorite, User
from conduit.services import article_service, tag_codec


class FakeRedis:
    """Just the slice of the redis.asyncio client the CacheManager calls."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value

    async def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)

    async def scan_iter(self, match=None):
        for key in list(self.store):
            if match is None or fnmatch.fnmatch(key, match):
                yield key


@pytest.fixture
def fake_redis():
    fake = FakeRedis()
    cache._redis = fake
    yield fake
    cache._redis = None


async def _publish(client: AsyncClient, headers: dict, title: str) -> str:
    resp = await client.post("/api/v1/articles", json={
        "article": {"title": title, "body": "Cached body"},
    }, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["article"]["slug"]


@pytest.mark.asyncio
async def test_detail_read_populates_cache(async_client: AsyncClient, register, fake_redis):
    alice = await register("alice")
    slug = await _publish(async_client, alice, "Cache Me")

    await async_client.get(f"/api/v1/articles/{slug}")

    assert article_key(slug) in fake_redis.store
    assert '"favorited"' not in fake_redis.store[article_key(slug)]


@pytest.mark.asyncio
async def test_cached_row_is_served_with_fresh_viewer_flags(
    async_client: AsyncClient, register, fake_redis
):
    alice = await register("alice")
    bob = await register("bob")
    slug = await _publish(async_client, alice, "Shared Row")
    await async_client.get(f"/api/v1/articles/{slug}")

    # A follow does not touch the cache, yet bob sees it immediately.
    await async_client.post("/api/v1/profiles/alice/follow", headers=bob)
    resp = await async_client.get(f"/api/v1/articles/{slug}", headers=bob)

    assert resp.json()["article"]["author"]["following"] is True
    assert resp.json()["article"]["favorited"] is False


@pytest.mark.asyncio
async def test_cached_row_serves_fresh_counter(async_client: AsyncClient, register, fake_redis):
    alice = await register("alice")
    bob = await register("bob")
    slug = await _publish(async_client, alice, "Counter Row")
    await async_client.get(f"/api/v1/articles/{slug}")
    assert '"favorites_count"' not in fake_redis.store[article_key(slug)]

    await async_client.post(f"/api/v1/articles/{slug}/favorite", headers=bob)

    # The row stays cached; the counter and flag are read fresh.
    assert article_key(slug) in fake_redis.store
    anonymous = (await async_client.get(f"/api/v1/articles/{slug}")).json()["article"]
    as_bob = (await async_client.get(f"/api/v1/articles/{slug}", headers=bob)).json()["article"]
    assert anonymous["favoritesCount"] == as_bob["favoritesCount"] == 1
    assert anonymous["favorited"] is False
    assert as_bob["favorited"] is True


@pytest.mark.asyncio
async def test_cached_row_of_deleted_article_is_not_served(
    async_client: AsyncClient, register, fake_redis
):
    alice = await register("alice")
    slug = await _publish(async_client, alice, "Gone Soon")
    await async_client.get(f"/api/v1/articles/{slug}")
    cached = fake_redis.store[article_key(slug)]

    await async_client.delete(f"/api/v1/articles/{slug}", headers=alice)
    assert article_key(slug) not in fake_redis.store

    # Even a row that reappears in the cache is checked against the database.
    fake_redis.store[article_key(slug)] = cached
    assert (await async_client.get(f"/api/v1/articles/{slug}")).status_code == 404


@pytest.mark.asyncio
async def test_invalidation_waits_for_commit(db_session, fake_redis):
    fake_redis.store[article_key("kept")] = "{}"

    cache.invalidate_article(db_session, "kept")
    assert article_key("kept") in fake_redis.store

    await db_session.commit()
    await cache.apply_invalidations(db_session)
    assert article_key("kept") not in fake_redis.store


@pytest.mark.asyncio
async def test_rename_invalidates_old_slug(async_client: AsyncClient, register, fake_redis):
    alice = await register("alice")
    slug = await _publish(async_client, alice, "Before Rename")
    await async_client.get(f"/api/v1/articles/{slug}")

    await async_client.put(f"/api/v1/articles/{slug}", json={
        "article": {"title": "After Rename"},
    }, headers=alice)

    assert article_key(slug) not in fake_redis.store
    assert (await async_client.get(f"/api/v1/articles/{slug}")).status_code == 404


@pytest.mark.asyncio
async def test_profile_change_clears_detail_namespace(
    async_client: AsyncClient, register, fake_redis
):
    alice = await register("alice")
    slug = await _publish(async_client, alice, "Bio Row")
    await async_client.get(f"/api/v1/articles/{slug}")
    fake_redis.store["unrelated"] = "keep"

    await async_client.put("/api/v1/user", json={"user": {"bio": "new bio"}}, headers=alice)

    assert article_key(slug) not in fake_redis.store
    assert fake_redis.store["unrelated"] == "keep"
    resp = await async_client.get(f"/api/v1/articles/{slug}")
    assert resp.json()["article"]["author"]["bio"] == "new bio"


@pytest.mark.asyncio
async def test_stats_track_hits_and_misses(async_client: AsyncClient, register, fake_redis):
    alice = await register("alice")
    slug = await _publish(async_client, alice, "Stats Row")
    before = cache.stats

    await async_client.get(f"/api/v1/articles/{slug}")
    await async_client.get(f"/api/v1/articles/{slug}")

    after = cache.stats
    assert after["connected"] is True
    assert after["misses"] - before["misses"] == 1
    assert after["hits"] - before["hits"] == 1


@pytest.mark.asyncio
async def test_read_during_uncommitted_favorite_does_not_pin_old_count(
    file_sessions, fake_redis
):
    async with file_sessions() as db:
        alice = User(username="alice", email="alice@example.com", password_hash="x")
        bob = User(username="bob", email="bob@example.com", password_hash="x")
        db.add_all([alice, bob])
        await db.flush()
        db.add(Article(
            slug="race", title="Race", description="", body="B",
            tag_list=tag_codec.encode(None), author_id=alice.id,
        ))
        await db.commit()

    async with file_sessions() as writer:
        await article_service.favorite_article(writer, "race", bob.id)

        # A reader fills the cache while the favorite is still uncommitted.
        async with file_sessions() as reader:
            seen = await article_service.get_article(reader, "race")
        assert seen["article"]["favoritesCount"] == 0
        assert article_key("race") in fake_redis.store

        await writer.commit()
        await cache.apply_invalidations(writer)

    async with file_sessions() as db:
        anonymous = await article_service.get_article(db, "race")
        as_bob = await article_service.get_article(db, "race", viewer_id=bob.id)
        favorite_rows = (await db.execute(select(func.count(Favorite.id)))).scalar_one()

    assert favorite_rows == 1
    assert anonymous["article"]["favoritesCount"] == 1
    assert as_bob["article"]["favoritesCount"] == 1
    assert as_bob["article"]["favorited"] is True
