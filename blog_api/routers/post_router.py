from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.orm import Session
from blog_api.database import get_db
from blog_api.dependencies import require_user
from blog_api.errors import NotFoundError, ValidationError
from blog_api.log import logger
from blog_api.models import Post
from blog_api.schemas import (
    MessageResponse,
    PostCreate,
    PostData,
    PostEnvelope,
    PostListData,
    PostListEnvelope,
    PostResponse,
    PostUpdate,
)
from blog_api.sessions import SessionUser

router = APIRouter(prefix="/posts", tags=["posts"])


def _get_post_or_404(db: Session, post_id: str) -> Post:
    post = db.get(Post, post_id)
    if post is None:
        raise NotFoundError("Post not found", field="error")
    return post


def _envelope(message: str, post: Post) -> PostEnvelope:
    return PostEnvelope(message=message, data=PostData(post=PostResponse.model_validate(post)))


@router.get("", response_model=PostListEnvelope)
def list_posts(db: Session = Depends(get_db)):
    posts = db.scalars(select(Post).order_by(Post.created_at)).all()
    return PostListEnvelope(
        message="Posts fetched successfully",
        data=PostListData(posts=[PostResponse.model_validate(p) for p in posts]),
    )


@router.get("/{post_id}", response_model=PostEnvelope)
def get_post(post_id: str, db: Session = Depends(get_db)):
    return _envelope("Post fetched successfully", _get_post_or_404(db, post_id))


@router.post("", response_model=PostEnvelope, status_code=status.HTTP_201_CREATED)
def create_post(
    request: PostCreate,
    user: SessionUser = Depends(require_user),
    db: Session = Depends(get_db),
):
    title = (request.title or "").strip()
    body = (request.body or "").strip()
    if not title or not body:
        raise ValidationError("Title and body are required", field="error")

    post = Post(title=title, body=body)
    db.add(post)
    db.commit()
    db.refresh(post)
    logger.info(f"Post created: id={post.id} by user id={user.id}")
    return _envelope("Post created successfully", post)


@router.patch("/{post_id}", response_model=PostEnvelope)
def update_post(
    post_id: str,
    request: PostUpdate,
    user: SessionUser = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Partial update: at least one of title/body, blank values are ignored."""
    title = (request.title or "").strip()
    body = (request.body or "").strip()
    if not title and not body:
        raise ValidationError("Title or body is required", field="error")

    post = _get_post_or_404(db, post_id)
    if title:
        post.title = title
    if body:
        post.body = body
    db.commit()
    db.refresh(post)
    logger.info(f"Post updated: id={post.id} by user id={user.id}")
    return _envelope("Post updated successfully", post)


@router.delete("/{post_id}", response_model=MessageResponse)
def delete_post(
    post_id: str,
    user: SessionUser = Depends(require_user),
    db: Session = Depends(get_db),
):
    post = _get_post_or_404(db, post_id)
    db.delete(post)
    db.commit()
    logger.info(f"Post deleted: id={post_id} by user id={user.id}")
    return MessageResponse(message="Post deleted successfully")
