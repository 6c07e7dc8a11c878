from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import FeedPagination, get_current_user_id, get_optional_user_id
from conduit.schemas import (
    ArticleCreateRequest,
    ArticleListResponse,
    ArticleResponse,
    ArticleUpdateRequest,
    CommentCreateRequest,
    CommentListResponse,
    CommentResponse,
)
from conduit.services import article_service, comment_service
from conduit.services.feed import FeedFilter

router = APIRouter(prefix="/api/v1/articles", tags=["articles"])

@router.get("", response_model=ArticleListResponse)
async def list_articles(
    tag: str | None = Query(None),
    author: str | None = Query(None),
    favorited: str | None = Query(None),
    pagination: FeedPagination = Depends(),
    viewer_id: int | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
):
    feed_filter = FeedFilter(tag=tag, author=author, favorited=favorited)
    return await article_service.list_articles(db, feed_filter, pagination.page, viewer_id)

@router.post("", status_code=201, response_model=ArticleResponse)
async def create_article(
    payload: ArticleCreateRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.create_article(db, payload.article, user_id)

@router.get("/{slug}", response_model=ArticleResponse)
async def get_article(
    slug: str,
    viewer_id: int | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.get_article(db, slug, viewer_id)

@router.put("/{slug}", response_model=ArticleResponse)
async def update_article(
    slug: str,
    payload: ArticleUpdateRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.update_article(db, slug, payload.article, user_id)

@router.delete("/{slug}", status_code=204)
async def delete_article(
    slug: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await article_service.delete_article(db, slug, user_id)

@router.post("/{slug}/favorite", response_model=ArticleResponse)
async def favorite_article(
    slug: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.favorite_article(db, slug, user_id)

@router.delete("/{slug}/favorite", response_model=ArticleResponse)
async def unfavorite_article(
    slug: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.unfavorite_article(db, slug, user_id)

@router.get("/{slug}/comments", response_model=CommentListResponse)
async def list_comments(
    slug: str,
    viewer_id: int | None = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await comment_service.list_comments(db, slug, viewer_id)

@router.post("/{slug}/comments", status_code=201, response_model=CommentResponse)
async def add_comment(
    slug: str,
    payload: CommentCreateRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await comment_service.add_comment(db, slug, payload.comment, user_id)

@router.delete("/{slug}/comments/{comment_id}", status_code=204)
async def delete_comment(
    slug: str,
    comment_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, slug, comment_id, user_id)
