# backend/crossborder/api/v1/blog.py
"""
Blog CMS.

Public readers get published posts only; BLOG_EDITOR and ADMIN see every
status and can write. Editing or deleting a post is limited to its author
or an admin.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import or_
from sqlalchemy.orm import Session

from crossborder.api.deps import CurrentContext, get_current_context, get_optional_context, paginate, require_role
from crossborder.core.errors import bad_request, conflict, forbidden, not_found, reject_nulls
from crossborder.db.session import get_db
from crossborder.models import BlogCategory, BlogPost, BlogTag, PostStatus, Role
from crossborder.services.formatting import as_aware_utc, content_stats, slugify, utcnow

logger = logging.getLogger("crossborder")

router = APIRouter(prefix="/blog", tags=["blog"])

WRITER_ROLES = {Role.BLOG_EDITOR.value, Role.ADMIN.value}


class PostCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    slug: Optional[str] = Field(default=None, max_length=120)
    excerpt: Optional[str] = None
    featured_image: Optional[str] = Field(default=None, max_length=1024)
    meta_title: Optional[str] = Field(default=None, max_length=255)
    meta_description: Optional[str] = Field(default=None, max_length=512)
    keywords: List[str] = Field(default_factory=list)
    status: PostStatus = PostStatus.DRAFT
    scheduled_at: Optional[datetime] = None
    category_ids: List[int] = Field(default_factory=list)
    tag_ids: List[int] = Field(default_factory=list)


class PostUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    content: Optional[str] = Field(default=None, min_length=1)
    slug: Optional[str] = Field(default=None, max_length=120)
    excerpt: Optional[str] = None
    featured_image: Optional[str] = Field(default=None, max_length=1024)
    meta_title: Optional[str] = Field(default=None, max_length=255)
    meta_description: Optional[str] = Field(default=None, max_length=512)
    keywords: Optional[List[str]] = None
    status: Optional[PostStatus] = None
    scheduled_at: Optional[datetime] = None
    category_ids: Optional[List[int]] = None
    tag_ids: Optional[List[int]] = None


class TermIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = None


def _is_writer(ctx: Optional[CurrentContext]) -> bool:
    return ctx is not None and ctx.has_any(WRITER_ROLES)


def _term_to_dict(term) -> dict:
    return {"id": term.id, "name": term.name, "slug": term.slug}


def _post_to_dict(post: BlogPost, *, with_content: bool = False) -> dict:
    data = {
        "id": post.id,
        "slug": post.slug,
        "title": post.title,
        "excerpt": post.excerpt,
        "featured_image": post.featured_image,
        "meta_title": post.meta_title,
        "meta_description": post.meta_description,
        "keywords": post.keywords or [],
        "status": post.status,
        "published_at": as_aware_utc(post.published_at).isoformat() if post.published_at else None,
        "scheduled_at": as_aware_utc(post.scheduled_at).isoformat() if post.scheduled_at else None,
        "view_count": post.view_count,
        "share_count": post.share_count,
        "author": {"id": post.author.id, "name": post.author.name} if post.author else None,
        "categories": [_term_to_dict(c) for c in post.categories],
        "tags": [_term_to_dict(t) for t in post.tags],
        "created_at": as_aware_utc(post.created_at).isoformat() if post.created_at else None,
    }
    if with_content:
        data["content"] = post.content
        data["stats"] = content_stats(post.content).as_dict()
    return data


def _published_filter(query):
    return query.filter(
        BlogPost.status == PostStatus.PUBLISHED.value,
        BlogPost.published_at.isnot(None),
        BlogPost.published_at <= utcnow(),
    )


def _slug_taken(db: Session, slug: str, exclude_id: Optional[int] = None) -> bool:
    q = db.query(BlogPost).filter(BlogPost.slug == slug)
    if exclude_id is not None:
        q = q.filter(BlogPost.id != exclude_id)
    return q.first() is not None


def _load_terms(db: Session, model, ids: List[int]) -> list:
    if not ids:
        return []
    return db.query(model).filter(model.id.in_(ids)).all()


def _can_edit(ctx: CurrentContext, post: BlogPost) -> bool:
    return post.author_id == ctx.user_id or ctx.has_any({Role.ADMIN.value})


# === Posts ===

@router.get("/posts")
def list_posts(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    status_filter: Optional[PostStatus] = Query(default=None, alias="status"),
    category: Optional[str] = None,
    tag: Optional[str] = None,
    author_id: Optional[int] = None,
    search: Optional[str] = None,
    ctx: Optional[CurrentContext] = Depends(get_optional_context),
    db: Session = Depends(get_db),
) -> dict:
    query = db.query(BlogPost)

    if _is_writer(ctx):
        # editors see published posts and their own unpublished work
        if not ctx.has_any({Role.ADMIN.value}):
            query = query.filter(
                or_(BlogPost.status == PostStatus.PUBLISHED.value, BlogPost.author_id == ctx.user_id)
            )
        if status_filter is not None:
            query = query.filter(BlogPost.status == status_filter.value)
    else:
        query = _published_filter(query)

    if category:
        query = query.filter(BlogPost.categories.any(BlogCategory.slug == category))
    if tag:
        query = query.filter(BlogPost.tags.any(BlogTag.slug == tag))
    if author_id is not None:
        query = query.filter(BlogPost.author_id == author_id)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(BlogPost.title.ilike(like), BlogPost.excerpt.ilike(like), BlogPost.content.ilike(like))
        )

    query = query.order_by(BlogPost.published_at.desc(), BlogPost.created_at.desc(), BlogPost.id.desc())
    posts, pagination = paginate(query, page, limit)
    return {"posts": [_post_to_dict(p) for p in posts], "pagination": pagination}


@router.post("/posts", status_code=status.HTTP_201_CREATED)
def create_post(
    payload: PostCreate,
    ctx: CurrentContext = Depends(get_current_context),
    db: Session = Depends(get_db),
) -> dict:
    require_role(ctx, WRITER_ROLES)

    slug = slugify(payload.slug or payload.title)
    if not slug:
        raise bad_request("Title must contain at least one letter or digit")
    if _slug_taken(db, slug):
        raise bad_request("Slug already exists")

    scheduled_at = as_aware_utc(payload.scheduled_at)
    published_at = utcnow() if payload.status is PostStatus.PUBLISHED else scheduled_at

    post = BlogPost(
        slug=slug,
        title=payload.title.strip(),
        content=payload.content,
        excerpt=payload.excerpt,
        featured_image=payload.featured_image,
        meta_title=payload.meta_title,
        meta_description=payload.meta_description,
        keywords=payload.keywords,
        status=payload.status.value,
        scheduled_at=scheduled_at,
        published_at=published_at,
        author_id=ctx.user_id,
    )
    post.categories = _load_terms(db, BlogCategory, payload.category_ids)
    post.tags = _load_terms(db, BlogTag, payload.tag_ids)

    db.add(post)
    db.commit()
    db.refresh(post)

    logger.info("blog_post_created post_id=%s slug=%s author_id=%s", post.id, post.slug, ctx.user_id)
    return {"message": "Post created successfully", "post": _post_to_dict(post, with_content=True)}


@router.get("/posts/{slug}")
def get_post(
    slug: str,
    ctx: Optional[CurrentContext] = Depends(get_optional_context),
    db: Session = Depends(get_db),
) -> dict:
    post = db.query(BlogPost).filter(BlogPost.slug == slug).first()
    if post is None:
        raise not_found("Post not found")

    published = post.status == PostStatus.PUBLISHED.value
    if not published and (ctx is None or not _can_edit(ctx, post)):
        raise not_found("Post not found")

    if published:
        post.view_count = (post.view_count or 0) + 1
        db.commit()
        db.refresh(post)

    return {"post": _post_to_dict(post, with_content=True)}


@router.put("/posts/{post_id}")
def update_post(
    post_id: int,
    payload: PostUpdate,
    ctx: CurrentContext = Depends(get_current_context),
    db: Session = Depends(get_db),
) -> dict:
    require_role(ctx, WRITER_ROLES)

    post = db.get(BlogPost, post_id)
    if post is None:
        raise not_found("Post not found")
    if not _can_edit(ctx, post):
        raise forbidden("Only the author or an admin can edit this post.")

    changes = payload.model_dump(exclude_unset=True)
    reject_nulls(changes, ("title", "content", "slug", "status", "keywords"))

    if changes.get("slug"):
        slug = slugify(changes["slug"])
        if not slug or _slug_taken(db, slug, exclude_id=post.id):
            raise bad_request("Slug already exists")
        post.slug = slug

    for key in ("title", "content", "excerpt", "featured_image", "meta_title", "meta_description", "keywords"):
        if key in changes:
            setattr(post, key, changes[key])

    if "scheduled_at" in changes:
        post.scheduled_at = as_aware_utc(changes["scheduled_at"])
    if changes.get("status") is not None:
        new_status = PostStatus(changes["status"])
        if new_status is PostStatus.PUBLISHED and post.status != PostStatus.PUBLISHED.value:
            post.published_at = utcnow()
        elif new_status is PostStatus.SCHEDULED:
            post.published_at = post.scheduled_at
        post.status = new_status.value

    if changes.get("category_ids") is not None:
        post.categories = _load_terms(db, BlogCategory, changes["category_ids"])
    if changes.get("tag_ids") is not None:
        post.tags = _load_terms(db, BlogTag, changes["tag_ids"])

    db.commit()
    db.refresh(post)
    return {"message": "Post updated successfully", "post": _post_to_dict(post, with_content=True)}


@router.delete("/posts/{post_id}")
def delete_post(
    post_id: int,
    ctx: CurrentContext = Depends(get_current_context),
    db: Session = Depends(get_db),
) -> dict:
    require_role(ctx, WRITER_ROLES)

    post = db.get(BlogPost, post_id)
    if post is None:
        raise not_found("Post not found")
    if not _can_edit(ctx, post):
        raise forbidden("Only the author or an admin can delete this post.")

    db.delete(post)
    db.commit()

    logger.info("blog_post_deleted post_id=%s user_id=%s", post_id, ctx.user_id)
    return {"message": "Post deleted successfully"}


# === Taxonomy ===

def _create_term(db: Session, model, payload: TermIn, label: str):
    slug = slugify(payload.slug or payload.name)
    if not slug:
        raise bad_request(f"{label} name must contain at least one letter or digit")
    name = payload.name.strip()
    exists = db.query(model).filter(or_(model.name == name, model.slug == slug)).first()
    if exists is not None:
        raise conflict(f"{label} with this name or slug already exists")

    term = model(name=name, slug=slug)
    if model is BlogCategory:
        term.description = payload.description
    db.add(term)
    db.commit()
    db.refresh(term)
    return term


@router.get("/categories")
def list_categories(db: Session = Depends(get_db)) -> dict:
    rows = db.query(BlogCategory).order_by(BlogCategory.name.asc()).all()
    return {
        "categories": [
            {**_term_to_dict(c), "description": c.description, "post_count": len(c.posts)} for c in rows
        ]
    }


@router.post("/categories", status_code=status.HTTP_201_CREATED)
def create_category(
    payload: TermIn,
    ctx: CurrentContext = Depends(get_current_context),
    db: Session = Depends(get_db),
) -> dict:
    require_role(ctx, WRITER_ROLES)
    category = _create_term(db, BlogCategory, payload, "Category")
    return {"category": {**_term_to_dict(category), "description": category.description}}


@router.get("/tags")
def list_tags(db: Session = Depends(get_db)) -> dict:
    rows = db.query(BlogTag).order_by(BlogTag.name.asc()).all()
    return {"tags": [{**_term_to_dict(t), "post_count": len(t.posts)} for t in rows]}


@router.post("/tags", status_code=status.HTTP_201_CREATED)
def create_tag(
    payload: TermIn,
    ctx: CurrentContext = Depends(get_current_context),
    db: Session = Depends(get_db),
) -> dict:
    require_role(ctx, WRITER_ROLES)
    tag = _create_term(db, BlogTag, payload, "Tag")
    return {"tag": _term_to_dict(tag)}
