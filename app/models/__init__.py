"""
Blogsite Models Package

All SQLAlchemy models for the blog platform.
"""

from app.models.base import Base
from app.models.post import Language, Post

__all__ = [
    # Base
    "Base",
    # Content
    "Post",
    "Language",
]
