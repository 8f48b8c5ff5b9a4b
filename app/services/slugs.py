"""
Slug and SEO fallback derivation.

Pure helpers used by the blog service and the rendering layer.
"""

import html
import re

from slugify import slugify as transliterate_slug

SLUG_MAX_LENGTH = 80
FALLBACK_SLUG = "post"

_TAGS = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")


def slugify(text: str, max_length: int = SLUG_MAX_LENGTH) -> str:
    """
    Turn a title into a URL-safe slug matching ``[a-z0-9-]+``.

    Non-Latin scripts (Urdu included) are transliterated with
    python-slugify, so each title keeps a readable base. Titles that
    transliterate to nothing fall back to ``post``.
    """
    value = transliterate_slug(text or "", max_length=max_length)
    return value.strip("-") or FALLBACK_SLUG


def next_free_slug(base: str, taken: set[str]) -> str:
    """
    Pick ``base`` if free, otherwise the lowest ``base-<n>`` with n >= 2.
    """
    if base not in taken:
        return base
    n = 2
    while f"{base}-{n}" in taken:
        n += 1
    return f"{base}-{n}"


def strip_markup(content: str) -> str:
    """Remove tags, unescape entities and collapse whitespace."""
    text = _TAGS.sub("", content or "")
    text = html.unescape(text)
    return _WHITESPACE.sub(" ", text).strip()


def derive_seo_description(content: str, length: int = 150) -> str:
    """Markup-stripped content truncated to ``length`` characters."""
    return strip_markup(content)[:length].rstrip()


def excerpt(content: str, length: int = 120) -> str:
    """Short teaser for listing cards, with an ellipsis when truncated."""
    text = strip_markup(content)
    if len(text) <= length:
        return text
    return text[:length].rstrip() + "..."
