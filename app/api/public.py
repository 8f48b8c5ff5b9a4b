"""
Public site routes: rendered post pages, listing, sitemap and admin UI.

These routes serve browsers and crawlers, so failures render HTML pages
rather than JSON bodies. The sitemap degrades to the root entry when the
store is unavailable.
"""

import logging
from pathlib import Path

from fastapi import APIRouter, Query, status
from fastapi.responses import FileResponse, HTMLResponse, Response

from app.core.dependencies import AdminKey, BlogServiceDep, SettingsDep
from app.core.exceptions import NotFoundError, StoreError
from app.services.rendering import (
    render_index,
    render_not_found,
    render_post_page,
    render_server_error,
    render_sitemap,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_class=HTMLResponse, include_in_schema=False)
async def index(
    service: BlogServiceDep,
    settings: SettingsDep,
    q: str = Query(default="", max_length=200),
) -> HTMLResponse:
    """Listing page with one card per post, optionally filtered by ``q``."""
    try:
        posts = await service.search(q) if q.strip() else await service.list()
    except StoreError:
        return HTMLResponse(
            render_server_error(settings),
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return HTMLResponse(render_index(posts, settings, query=q))


@router.get("/admin", dependencies=[AdminKey], include_in_schema=False)
async def admin_page(settings: SettingsDep) -> Response:
    """Serve the admin panel file."""
    admin_file = Path(settings.static_root) / "admin" / "admin.html"
    if not admin_file.is_file():
        return HTMLResponse(
            render_not_found(settings),
            status_code=status.HTTP_404_NOT_FOUND,
        )
    return FileResponse(admin_file)


@router.get("/sitemap.xml", include_in_schema=False)
async def sitemap(service: BlogServiceDep, settings: SettingsDep) -> Response:
    """XML sitemap of the root page and every post."""
    try:
        entries = await service.sitemap_entries()
    except StoreError:
        logger.warning("Sitemap served without posts: store unavailable")
        entries = []
    return Response(
        content=render_sitemap(entries, settings.site_url),
        media_type="application/xml",
    )


async def _render_post(slug: str, service, settings) -> HTMLResponse:
    try:
        post = await service.get_by_slug(slug)
    except NotFoundError:
        return HTMLResponse(
            render_not_found(settings),
            status_code=status.HTTP_404_NOT_FOUND,
        )
    except StoreError:
        return HTMLResponse(
            render_server_error(settings),
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return HTMLResponse(render_post_page(post, settings))


@router.get("/post/{slug}", response_class=HTMLResponse, include_in_schema=False)
async def post_page(slug: str, service: BlogServiceDep, settings: SettingsDep) -> HTMLResponse:
    """SEO page for a post."""
    return await _render_post(slug, service, settings)


# Must stay the last route registered on the application
@router.get("/{slug}", response_class=HTMLResponse, include_in_schema=False)
async def post_page_short(slug: str, service: BlogServiceDep, settings: SettingsDep) -> HTMLResponse:
    """SEO page for a post addressed directly by slug."""
    return await _render_post(slug, service, settings)
