"""
FastAPI Dependencies for Blogsite.

Reusable dependencies for settings, database sessions, services and the
admin gate.
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends, Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.database import get_db
from app.core.exceptions import AuthorizationError
from app.services.admin_gate import is_authorized
from app.services.blog_service import BlogService
from app.services.media import AssetUploader


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


SettingsDep = Annotated[Settings, Depends(get_app_settings)]


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting database sessions."""
    async for session in get_db():
        yield session


DbSession = Annotated[AsyncSession, Depends(get_db_session)]


def get_blog_service(session: DbSession, settings: SettingsDep) -> BlogService:
    return BlogService(session, seo_description_length=settings.seo_description_length)


BlogServiceDep = Annotated[BlogService, Depends(get_blog_service)]


def get_uploader(request: Request) -> AssetUploader:
    return request.app.state.uploader


UploaderDep = Annotated[AssetUploader, Depends(get_uploader)]


async def require_admin_key(
    settings: SettingsDep,
    x_admin_key: Annotated[str | None, Header(alias="X-Admin-Key")] = None,
    key: Annotated[str | None, Query(description="Admin key (legacy query form)")] = None,
) -> None:
    """
    Require the admin shared secret.

    Accepts the ``X-Admin-Key`` header or the ``key`` query parameter
    used by the admin panel.

    Raises:
        AuthorizationError: If the credential is missing or wrong
    """
    if not is_authorized(x_admin_key or key, settings.admin_secret):
        raise AuthorizationError("Access Denied")


AdminKey = Depends(require_admin_key)
