"""
Post model - the single content entity of the blog.

Posts are addressed both by their UUID and by a unique, URL-safe slug
derived from the title.
"""

from enum import Enum

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampedMixin

TITLE_MAX_LENGTH = 300
SEO_DESCRIPTION_MAX_LENGTH = 500
IMAGE_MAX_LENGTH = 1000


class Language(str, Enum):
    """Languages a post can be written in."""

    ENGLISH = "english"
    URDU = "urdu"

    @classmethod
    def coerce(cls, value: object) -> "Language":
        """Map any input onto a supported language, defaulting to English."""
        if isinstance(value, Language):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for language in cls:
                if language.value == normalized:
                    return language
        return cls.ENGLISH


class Post(TimestampedMixin, Base):
    """
    Blog post.

    ``content`` is stored verbatim as HTML. The slug column carries a
    unique constraint so the database rejects duplicate slugs even when
    two writers race past the service's availability check.
    """

    __tablename__ = "posts"
    __table_args__ = (Index("ix_posts_created_at", "created_at"),)

    title: Mapped[str] = mapped_column(String(TITLE_MAX_LENGTH), nullable=False)

    slug: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        index=True,
        nullable=False,
        comment="URL-safe public lookup key derived from the title",
    )

    content: Mapped[str] = mapped_column(Text, nullable=False)

    image: Mapped[str | None] = mapped_column(
        String(IMAGE_MAX_LENGTH),
        nullable=True,
        comment="Absolute URL or root-relative path of the cover image",
    )

    language: Mapped[str] = mapped_column(
        String(20),
        default=Language.ENGLISH.value,
        nullable=False,
    )

    # SEO overrides
    seo_title: Mapped[str | None] = mapped_column(String(TITLE_MAX_LENGTH), nullable=True)
    seo_description: Mapped[str | None] = mapped_column(String(SEO_DESCRIPTION_MAX_LENGTH), nullable=True)

    @property
    def is_urdu(self) -> bool:
        return self.language == Language.URDU.value

    def __repr__(self) -> str:
        return f"<Post(slug='{self.slug}', title='{self.title}', language={self.language})>"
