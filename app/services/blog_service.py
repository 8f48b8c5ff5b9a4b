"""
Blog Service - CRUD over posts with slug and SEO derivation.

Slug uniqueness is enforced by the ``posts.slug`` unique constraint. The
service picks the lowest free ``-<n>`` suffix before writing and, if a
concurrent writer claims the same slug first, rolls back and retries with
a freshly computed suffix.
"""

import logging
import uuid
from collections.abc import Mapping
from datetime import datetime
from typing import Any, List, NoReturn, Tuple

from sqlalchemy import delete, desc, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, StoreError, ValidationError
from app.models.base import utcnow
from app.models.post import Language, Post
from app.services.media import normalize_image_ref
from app.services.slugs import derive_seo_description, next_free_slug, slugify

logger = logging.getLogger(__name__)

MAX_SLUG_ATTEMPTS = 5

# asyncpg raises plain OSError subclasses when the server is unreachable
STORE_ERRORS = (SQLAlchemyError, OSError)

UPDATABLE_FIELDS = (
    "title",
    "content",
    "language",
    "seo_title",
    "seo_description",
    "image",
)


def _clean_optional(value: Any) -> str | None:
    """Blank optional text becomes None."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _require_text(value: Any) -> str:
    if value is None or not str(value).strip():
        raise ValidationError("Title and content are required")
    return str(value)


def _parse_id(post_id: str | uuid.UUID) -> uuid.UUID:
    if isinstance(post_id, uuid.UUID):
        return post_id
    try:
        return uuid.UUID(str(post_id))
    except ValueError as e:
        raise NotFoundError("Blog not found") from e


class BlogService:
    """Service for managing blog posts."""

    def __init__(self, db: AsyncSession, seo_description_length: int = 150):
        self.db = db
        self.seo_description_length = seo_description_length

    # ==================== Slugs ====================

    async def _taken_slugs(self, base: str, exclude_id: uuid.UUID | None = None) -> set[str]:
        """Slugs equal to ``base`` or starting with ``base-``."""
        query = select(Post.slug).where(
            or_(Post.slug == base, Post.slug.like(f"{base}-%"))
        )
        if exclude_id is not None:
            query = query.where(Post.id != exclude_id)
        try:
            result = await self.db.execute(query)
        except STORE_ERRORS as e:
            self._raise_store_error("check slug availability", e)
        return set(result.scalars().all())

    async def _next_free_slug(self, base: str, exclude_id: uuid.UUID | None = None) -> str:
        return next_free_slug(base, await self._taken_slugs(base, exclude_id))

    # ==================== Post CRUD ====================

    async def create(
        self,
        title: str,
        content: str,
        language: Any = None,
        seo_title: str | None = None,
        seo_description: str | None = None,
        image: str | None = None,
    ) -> Post:
        """Create a post, deriving slug and SEO fallbacks."""
        if not title or not title.strip() or not content or not content.strip():
            raise ValidationError("Title and content are required")

        title = title.strip()
        base_slug = slugify(title)
        now = utcnow()
        post = Post(
            id=uuid.uuid4(),
            title=title,
            content=content,
            language=Language.coerce(language).value,
            image=normalize_image_ref(image),
            seo_title=_clean_optional(seo_title) or title,
            seo_description=_clean_optional(seo_description)
            or derive_seo_description(content, self.seo_description_length),
            created_at=now,
            updated_at=now,
        )

        for attempt in range(1, MAX_SLUG_ATTEMPTS + 1):
            slug = await self._next_free_slug(base_slug)
            post.slug = slug
            self.db.add(post)
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                logger.warning(
                    "Slug '%s' taken concurrently (attempt %d/%d)",
                    slug, attempt, MAX_SLUG_ATTEMPTS,
                )
                continue
            except STORE_ERRORS as e:
                self._raise_store_error("create post", e)
            logger.info("Blog created: %s", slug)
            return post

        raise StoreError(f"Could not allocate a unique slug for '{base_slug}'")

    async def update(self, post_id: str | uuid.UUID, fields: Mapping[str, Any]) -> Post:
        """
        Apply a partial update.

        Only keys present in ``fields`` are touched. A changed title
        re-derives the slug, skipping this post's own slug in the
        collision check.
        """
        pk = _parse_id(post_id)
        changes = {key: value for key, value in fields.items() if key in UPDATABLE_FIELDS}

        if "title" in changes:
            changes["title"] = _require_text(changes["title"]).strip()
        if "content" in changes:
            changes["content"] = _require_text(changes["content"])

        for attempt in range(1, MAX_SLUG_ATTEMPTS + 1):
            post = await self.get_by_id(pk)

            if "title" in changes and changes["title"] != post.title:
                post.title = changes["title"]
                post.slug = await self._next_free_slug(slugify(post.title), exclude_id=pk)
            if "content" in changes:
                post.content = changes["content"]
            if "language" in changes:
                post.language = Language.coerce(changes["language"]).value
            if "seo_title" in changes:
                post.seo_title = _clean_optional(changes["seo_title"])
            if "seo_description" in changes:
                post.seo_description = _clean_optional(changes["seo_description"])
            if "image" in changes:
                post.image = normalize_image_ref(changes["image"])
            post.updated_at = utcnow()
            slug = post.slug

            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                logger.warning(
                    "Slug '%s' taken concurrently (attempt %d/%d)",
                    slug, attempt, MAX_SLUG_ATTEMPTS,
                )
                continue
            except STORE_ERRORS as e:
                self._raise_store_error("update post", e)
            logger.info("Blog updated: %s", slug)
            return post

        raise StoreError(f"Could not allocate a unique slug for post {pk}")

    async def delete(self, post_id: str | uuid.UUID) -> None:
        """
        Permanently delete a post.

        Raises NotFoundError when nothing was deleted.
        """
        pk = _parse_id(post_id)
        try:
            result = await self.db.execute(delete(Post).where(Post.id == pk))
            await self.db.commit()
        except STORE_ERRORS as e:
            self._raise_store_error("delete post", e)
        if result.rowcount == 0:
            raise NotFoundError("Blog not found")
        logger.info("Blog deleted: %s", pk)

    async def get_by_id(self, post_id: str | uuid.UUID) -> Post:
        pk = _parse_id(post_id)
        post = await self._scalar(select(Post).where(Post.id == pk))
        if post is None:
            raise NotFoundError("Blog not found")
        return post

    async def get_by_slug(self, slug: str) -> Post:
        post = await self._scalar(select(Post).where(Post.slug == slug))
        if post is None:
            raise NotFoundError("Blog not found")
        return post

    async def list(self) -> List[Post]:
        """All posts, newest first."""
        return await self._scalars(select(Post).order_by(desc(Post.created_at)))

    async def search(self, query: str) -> List[Post]:
        """Case-insensitive substring match on title or content, newest first."""
        query = (query or "").strip().lower()
        if not query:
            return await self.list()
        pattern = f"%{query}%"
        return await self._scalars(
            select(Post)
            .where(
                or_(
                    func.lower(Post.title).like(pattern),
                    func.lower(Post.content).like(pattern),
                )
            )
            .order_by(desc(Post.created_at))
        )

    async def sitemap_entries(self) -> List[Tuple[str, datetime]]:
        """(slug, updated_at) pairs, most recently modified first."""
        try:
            result = await self.db.execute(
                select(Post.slug, Post.updated_at).order_by(desc(Post.updated_at))
            )
        except STORE_ERRORS as e:
            self._raise_store_error("load sitemap entries", e)
        return [(slug, updated_at) for slug, updated_at in result.all()]

    # ==================== Helpers ====================

    async def _scalar(self, query) -> Post | None:
        try:
            result = await self.db.execute(query)
        except STORE_ERRORS as e:
            self._raise_store_error("load post", e)
        return result.scalar_one_or_none()

    async def _scalars(self, query) -> List[Post]:
        try:
            result = await self.db.execute(query)
        except STORE_ERRORS as e:
            self._raise_store_error("list posts", e)
        return list(result.scalars().all())

    def _raise_store_error(self, action: str, error: Exception) -> NoReturn:
        logger.exception("Store failure while trying to %s: %s", action, error)
        raise StoreError(f"Failed to {action}") from error
