"""
Public Rendering Layer.

Server-side HTML for post pages and the listing, plus the XML sitemap.
Templates are autoescaped; post content is rich HTML and is sanitized
with nh3 before it is marked safe.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

import nh3
from jinja2 import Environment, PackageLoader, select_autoescape
from markupsafe import Markup

from app.core.config import Settings
from app.models.base import as_utc
from app.models.post import Post
from app.services.media import resolve_image_url
from app.services.slugs import derive_seo_description, excerpt

PLACEHOLDER_IMAGE = "https://via.placeholder.com/400x250?text=No+Image"
META_DESCRIPTION_LENGTH = 160
CARD_EXCERPT_LENGTH = 120

ALLOWED_TAGS = {
    "a", "abbr", "b", "blockquote", "br", "code", "em", "figcaption",
    "figure", "h1", "h2", "h3", "h4", "h5", "h6", "hr", "i", "img", "li",
    "ol", "p", "pre", "s", "span", "strong", "sub", "sup", "table",
    "tbody", "td", "th", "thead", "tr", "u", "ul",
}

ALLOWED_ATTRIBUTES = {
    "a": {"href", "title", "target"},
    "img": {"src", "alt", "title", "width", "height"},
    "span": {"class"},
    "p": {"class"},
    "pre": {"class"},
    "code": {"class"},
    "td": {"colspan", "rowspan"},
    "th": {"colspan", "rowspan"},
}

ALLOWED_URL_SCHEMES = {"http", "https", "mailto", "tel"}

templates = Environment(
    loader=PackageLoader("app", "templates"),
    autoescape=select_autoescape(["html", "xml"]),
    trim_blocks=True,
    lstrip_blocks=True,
)


def sanitize_html(content: str) -> str:
    """Strip scripts, event handlers and unknown tags from post HTML."""
    return nh3.clean(
        content or "",
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        url_schemes=ALLOWED_URL_SCHEMES,
        link_rel="noopener noreferrer",
        strip_comments=True,
    )


def page_direction(language: str | None) -> tuple[str, str]:
    """(lang, dir) attributes for the document root."""
    if language == "urdu":
        return "ur", "rtl"
    return "en", "ltr"


def _body_html(content: str, settings: Settings) -> Markup:
    if settings.sanitize_content:
        return Markup(sanitize_html(content))
    # Trusted-admin-input mode: content is emitted verbatim
    return Markup(content or "")


def render_post_page(post: Post, settings: Settings) -> str:
    """Full HTML document for a single post."""
    lang, direction = page_direction(post.language)
    site_url = settings.site_url.rstrip("/")
    description = post.seo_description or derive_seo_description(
        post.content, META_DESCRIPTION_LENGTH
    )
    return templates.get_template("post.html").render(
        lang=lang,
        direction=direction,
        is_urdu=post.is_urdu,
        page_title=post.seo_title or post.title,
        description=description,
        canonical_url=f"{site_url}/post/{post.slug}",
        title=post.title,
        image_url=resolve_image_url(post.image, site_url),
        body=_body_html(post.content, settings),
        site_name=settings.app_name,
    )


def render_not_found(settings: Settings) -> str:
    return templates.get_template("not_found.html").render(site_name=settings.app_name)


def render_server_error(settings: Settings) -> str:
    return templates.get_template("error.html").render(site_name=settings.app_name)


# ============== Listing (client view) ==============


@dataclass
class PostCard:
    """View-model for one card on the listing page."""

    title: str
    slug: str
    excerpt: str
    image_url: str
    language_class: str
    url: str


def build_card(post: Post, site_url: str) -> PostCard:
    return PostCard(
        title=post.title,
        slug=post.slug,
        excerpt=post.seo_description or excerpt(post.content, CARD_EXCERPT_LENGTH),
        image_url=resolve_image_url(post.image, site_url) or PLACEHOLDER_IMAGE,
        language_class="urdu" if post.is_urdu else "english",
        url=f"/post/{post.slug}",
    )


def render_index(posts: Iterable[Post], settings: Settings, query: str = "") -> str:
    """Listing page with one card per post."""
    cards = [build_card(post, settings.site_url) for post in posts]
    return templates.get_template("index.html").render(
        cards=cards,
        query=query,
        site_name=settings.app_name,
    )


# ============== Sitemap ==============


def format_lastmod(value: datetime) -> str:
    """W3C datetime in UTC, second precision."""
    value = as_utc(value) or datetime.now(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S+00:00")


def render_sitemap(entries: Iterable[tuple[str, datetime]], site_url: str) -> str:
    """
    sitemaps.org ``urlset`` with the site root followed by one entry per post.

    An empty ``entries`` still yields a valid document with the root URL.
    """
    base_url = site_url.rstrip("/")
    urls = [
        {"loc": f"{base_url}/post/{slug}", "lastmod": format_lastmod(updated_at)}
        for slug, updated_at in entries
    ]
    return templates.get_template("sitemap.xml").render(root=f"{base_url}/", urls=urls)
