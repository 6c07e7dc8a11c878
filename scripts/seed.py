"""Database seeder: users, articles, favorites, follows and comments."""
import asyncio
import argparse
import random
import time
from datetime import datetime, timezone, timedelta

from sqlalchemy import func, select, update

from conduit.database import engine, async_session, Base
from conduit.models import Article, Comment, Favorite, Follow, User
from conduit.security import hash_password
from conduit.services import tag_codec
from conduit.services.slugs import slugify

TAGS = ["python", "fastapi", "postgresql", "redis", "docker", "kubernetes",
        "react", "typescript", "aws", "devops", "testing", "performance",
        "security", "microservices", "graphql", "rest-api"]

SEED_PASSWORD = "password123"


async def seed(small: bool = False):
    num_users = 10 if small else 50
    num_articles = 100 if small else 5000
    max_comments = 2 if small else 5
    max_favorites = 3 if small else 10

    print(f"Seeding: {num_users} users, {num_articles} articles")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        # One hash for everyone; bcrypt per user would dominate the run.
        password_hash = hash_password(SEED_PASSWORD)
        users = []
        for i in range(num_users):
            user = User(
                username=f"user_{i:04d}",
                email=f"user_{i:04d}@example.com",
                password_hash=password_hash,
                bio=f"I am test user number {i}. I write about technology.",
            )
            session.add(user)
            users.append(user)
        await session.flush()
        user_ids = [u.id for u in users]
        print(f"  Created {len(users)} users")

        follows = 0
        for follower_id in user_ids:
            for following_id in random.sample(user_ids, k=min(5, len(user_ids))):
                if following_id != follower_id:
                    session.add(Follow(follower_id=follower_id, following_id=following_id))
                    follows += 1
        await session.flush()
        print(f"  Created {follows} follows")

        batch_size = 500
        total_comments = 0
        total_favorites = 0
        for batch_start in range(0, num_articles, batch_size):
            batch_end = min(batch_start + batch_size, num_articles)
            batch = []
            for i in range(batch_start, batch_end):
                created = datetime.now(timezone.utc) - timedelta(days=random.randint(0, 365))
                title = f"Article {i}: How to optimize {random.choice(TAGS)} applications"
                article = Article(
                    slug=slugify(title),
                    title=title,
                    description=f"A guide to optimizing {random.choice(TAGS)} applications for production.",
                    body=f"This is the full content of article {i}. " * 20,
                    tag_list=tag_codec.encode(random.sample(TAGS, k=random.randint(0, 4))),
                    created_at=created,
                    updated_at=created,
                    author_id=random.choice(user_ids),
                )
                session.add(article)
                batch.append(article)
            await session.flush()

            for article in batch:
                for _ in range(random.randint(0, max_comments)):
                    session.add(Comment(
                        body="Great article! Very helpful for understanding the topic.",
                        author_id=random.choice(user_ids),
                        article_id=article.id,
                    ))
                    total_comments += 1
                fans = random.sample(user_ids, k=random.randint(0, min(max_favorites, len(user_ids))))
                for user_id in fans:
                    session.add(Favorite(user_id=user_id, article_id=article.id))
                total_favorites += len(fans)
            await session.flush()

            print(f"  Batch {batch_start}-{batch_end}: articles created")

        # Counters are derived from the relation rows in one statement.
        favorite_count = (
            select(func.count(Favorite.id))
            .where(Favorite.article_id == Article.id)
            .scalar_subquery()
        )
        await session.execute(
            update(Article)
            .values(favorites_count=favorite_count, updated_at=Article.updated_at)
            .execution_options(synchronize_session=False)
        )
        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Users: {num_users} (password: {SEED_PASSWORD})")
    print(f"  Articles: {num_articles}")
    print(f"  Comments: {total_comments}")
    print(f"  Favorites: {total_favorites}")


def main():
    parser = argparse.ArgumentParser(description="Seed the Conduit database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (100 articles)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
