"""
Blog API Endpoints.

Provides:
- Public endpoints for listing posts and fetching one by id or slug
- Admin endpoints (shared-secret gated) for create, update, delete and
  inline image upload
"""

import logging
import uuid
from datetime import datetime
from typing import Any

import pydantic
from fastapi import APIRouter, Request, status
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel
from starlette.datastructures import UploadFile

from app.core.dependencies import AdminKey, BlogServiceDep, UploaderDep
from app.core.exceptions import ValidationError
from app.middleware.security import rate_limit_writes
from app.models.base import as_utc
from app.models.post import (
    IMAGE_MAX_LENGTH,
    SEO_DESCRIPTION_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    Post,
)

logger = logging.getLogger(__name__)

router = APIRouter()
frontend_router = APIRouter()

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


# ============== Request/Response Models ==============


class CamelModel(BaseModel):
    """Base model exposing camelCase field names on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PostCreateRequest(CamelModel):
    """Request model for creating a post."""

    title: str = Field(default="", max_length=TITLE_MAX_LENGTH)
    content: str = ""
    # Anything unrecognized is coerced to english by the service
    language: Any = None
    seo_title: str | None = Field(default=None, max_length=TITLE_MAX_LENGTH)
    seo_description: str | None = Field(default=None, max_length=SEO_DESCRIPTION_MAX_LENGTH)
    image: str | None = Field(default=None, max_length=IMAGE_MAX_LENGTH)


class PostUpdateRequest(CamelModel):
    """Request model for a partial update; omitted fields are left untouched."""

    title: str | None = Field(default=None, max_length=TITLE_MAX_LENGTH)
    content: str | None = None
    language: Any = None
    seo_title: str | None = Field(default=None, max_length=TITLE_MAX_LENGTH)
    seo_description: str | None = Field(default=None, max_length=SEO_DESCRIPTION_MAX_LENGTH)
    image: str | None = Field(default=None, max_length=IMAGE_MAX_LENGTH)


class PostSummaryResponse(CamelModel):
    """Listing projection of a post (no content)."""

    id: uuid.UUID
    title: str
    slug: str
    image: str | None
    seo_description: str | None
    language: str
    created_at: datetime

    @field_serializer("created_at")
    def _serialize_created_at(self, value: datetime) -> str:
        return as_utc(value).isoformat()


class PostResponse(CamelModel):
    """Response model for a full post."""

    id: uuid.UUID
    title: str
    slug: str
    content: str
    image: str | None
    language: str
    seo_title: str | None
    seo_description: str | None
    created_at: datetime
    updated_at: datetime

    @field_serializer("created_at", "updated_at")
    def _serialize_timestamps(self, value: datetime) -> str:
        return as_utc(value).isoformat()


class PostListResponse(CamelModel):
    success: bool = True
    blogs: list[PostSummaryResponse]


class PostEnvelope(CamelModel):
    success: bool = True
    message: str
    blog: PostResponse


class PostDeleteResponse(CamelModel):
    success: bool = True
    message: str
    deleted_id: str


class ImageUploadResponse(CamelModel):
    success: bool = True
    url: str


# ============== Helpers ==============


async def _read_payload(request: Request) -> tuple[dict[str, Any], UploadFile | None]:
    """
    Read a JSON or form body.

    Returns the plain fields and the uploaded ``image`` file, if any.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        data: dict[str, Any] = {}
        image_file = None
        for field, value in form.multi_items():
            if isinstance(value, UploadFile):
                if field == "image" and value.filename:
                    image_file = value
            else:
                data[field] = value
        return data, image_file

    try:
        data = await request.json()
    except ValueError as e:
        raise ValidationError("Request body must be JSON or form data") from e
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data, None


def _parse(model: type[CamelModel], data: dict[str, Any]) -> CamelModel:
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(f"{field}: {first.get('msg')}") from e


async def _store_image(uploader, image_file: UploadFile) -> str:
    data = await image_file.read()
    return await uploader.upload(image_file.filename, data, image_file.content_type)


def _summaries(posts: list[Post]) -> list[PostSummaryResponse]:
    return [PostSummaryResponse.model_validate(post) for post in posts]


# ============== Public Endpoints ==============


@router.get(
    "",
    response_model=PostListResponse,
    summary="List Posts",
    description="All posts, newest first, without content.",
)
async def list_posts(service: BlogServiceDep) -> PostListResponse:
    posts = await service.list()
    return PostListResponse(blogs=_summaries(posts))


@frontend_router.get(
    "/api/frontend/blogs",
    response_model=list[PostSummaryResponse],
    summary="List Posts (frontend)",
    description="Bare summary array consumed by the public site script.",
)
async def list_posts_frontend(service: BlogServiceDep) -> list[PostSummaryResponse]:
    return _summaries(await service.list())


@router.get(
    "/slug/{slug}",
    response_model=PostEnvelope,
    summary="Get Post by Slug",
)
async def get_post_by_slug(slug: str, service: BlogServiceDep) -> PostEnvelope:
    post = await service.get_by_slug(slug)
    return PostEnvelope(message="Blog found", blog=PostResponse.model_validate(post))


@router.get(
    "/{post_id}",
    response_model=PostEnvelope,
    summary="Get Post by ID",
)
async def get_post(post_id: str, service: BlogServiceDep) -> PostEnvelope:
    post = await service.get_by_id(post_id)
    return PostEnvelope(message="Blog found", blog=PostResponse.model_validate(post))


# ============== Admin Endpoints ==============


@router.post(
    "",
    response_model=PostEnvelope,
    status_code=status.HTTP_201_CREATED,
    dependencies=[AdminKey],
    summary="Create Post",
    description="Create a post from JSON or multipart form data (optional `image` file).",
)
@rate_limit_writes()
async def create_post(
    request: Request,
    service: BlogServiceDep,
    uploader: UploaderDep,
) -> PostEnvelope:
    data, image_file = await _read_payload(request)
    payload = _parse(PostCreateRequest, data)

    if not payload.title.strip() or not payload.content.strip():
        raise ValidationError("Title and content are required")

    image = payload.image
    if image_file is not None:
        image = await _store_image(uploader, image_file)

    post = await service.create(
        title=payload.title,
        content=payload.content,
        language=payload.language,
        seo_title=payload.seo_title,
        seo_description=payload.seo_description,
        image=image,
    )
    return PostEnvelope(
        message="Blog created successfully",
        blog=PostResponse.model_validate(post),
    )


@router.post(
    "/upload-image",
    response_model=ImageUploadResponse,
    dependencies=[AdminKey],
    summary="Upload Inline Image",
    description="Upload an image for the rich-text editor and return its URL.",
)
@rate_limit_writes()
async def upload_image(request: Request, uploader: UploaderDep) -> ImageUploadResponse:
    _, image_file = await _read_payload(request)
    if image_file is None:
        raise ValidationError("No file uploaded")
    url = await _store_image(uploader, image_file)
    return ImageUploadResponse(url=url)


@router.put(
    "/{post_id}",
    response_model=PostEnvelope,
    dependencies=[AdminKey],
    summary="Update Post",
    description="Partial update: only provided fields are changed.",
)
@rate_limit_writes()
async def update_post(
    post_id: str,
    request: Request,
    service: BlogServiceDep,
    uploader: UploaderDep,
) -> PostEnvelope:
    data, image_file = await _read_payload(request)
    payload = _parse(PostUpdateRequest, data)
    fields = payload.model_dump(exclude_unset=True)

    # Resolve the post before storing any new image
    await service.get_by_id(post_id)
    if image_file is not None:
        fields["image"] = await _store_image(uploader, image_file)

    post = await service.update(post_id, fields)
    return PostEnvelope(message="Blog updated", blog=PostResponse.model_validate(post))


@router.delete(
    "/{post_id}",
    response_model=PostDeleteResponse,
    dependencies=[AdminKey],
    summary="Delete Post",
    description="Delete a post permanently. Unknown ids return 404.",
)
@rate_limit_writes()
async def delete_post(
    post_id: str,
    request: Request,
    service: BlogServiceDep,
) -> PostDeleteResponse:
    await service.delete(post_id)
    return PostDeleteResponse(message="Blog deleted", deleted_id=post_id)
