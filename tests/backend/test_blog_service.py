"""
Blog Service Tests.

Tests for:
- Slug derivation and collision handling
- SEO fallbacks and language coercion
- Partial updates and timestamps
- Delete policy and lookups
"""

import re
import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import NotFoundError, StoreError, ValidationError
from app.models.base import as_utc
from app.services.blog_service import MAX_SLUG_ATTEMPTS, BlogService

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")


# ============== Create ==============

class TestCreate:
    """Tests for BlogService.create."""

    async def test_create_derives_slug_and_defaults(self, service):
        """Test a minimal create fills slug, language and SEO fallbacks."""
        post = await service.create("Hello World", "<p>Hello there</p>")

        assert post.id is not None
        assert post.slug == "hello-world"
        assert post.language == "english"
        assert post.seo_title == "Hello World"
        assert post.seo_description == "Hello there"
        assert post.image is None
        assert post.created_at == post.updated_at

    async def test_slug_is_url_safe(self, service):
        """Test slugs only contain lowercase letters, digits and hyphens."""
        titles = ["Crème Brûlée: A Guide!", "  Spaces   everywhere  ", "C++ & Rust?", "اردو عنوان"]
        for title in titles:
            post = await service.create(title, "<p>body</p>")
            assert SLUG_PATTERN.match(post.slug), post.slug

    async def test_duplicate_titles_get_distinct_slugs(self, service):
        """Test two posts titled 'Hello World' never share a slug."""
        first = await service.create("Hello World", "<p>one</p>")
        second = await service.create("Hello World", "<p>two</p>")
        third = await service.create("hello   world!", "<p>three</p>")

        assert first.slug == "hello-world"
        assert second.slug == "hello-world-2"
        assert third.slug == "hello-world-3"
        assert len({first.id, second.id, third.id}) == 3

    async def test_suffix_reuses_lowest_free_number(self, service):
        """Test the disambiguator is the lowest free counter."""
        await service.create("Hello World", "<p>one</p>")
        second = await service.create("Hello World", "<p>two</p>")
        await service.create("Hello World", "<p>three</p>")
        await service.delete(second.id)

        again = await service.create("Hello World", "<p>four</p>")

        assert again.slug == "hello-world-2"

    async def test_unrelated_prefix_does_not_block_slug(self, service):
        """Test 'hello-world-tour' does not count as a collision for 'hello-world'."""
        await service.create("Hello World Tour", "<p>x</p>")
        post = await service.create("Hello World", "<p>y</p>")
        assert post.slug == "hello-world"

    @pytest.mark.parametrize(
        "title, content",
        [("", "<p>x</p>"), ("Title", ""), ("   ", "<p>x</p>"), ("Title", "   ")],
    )
    async def test_missing_title_or_content_rejected(self, service, title, content):
        """Test empty title or content raises ValidationError and stores nothing."""
        with pytest.raises(ValidationError):
            await service.create(title, content)
        assert await service.list() == []

    async def test_invalid_language_coerced_to_english(self, service):
        """Test unknown languages fall back to english."""
        post = await service.create("Title", "<p>x</p>", language="klingon")
        assert post.language == "english"

    async def test_urdu_language_kept(self, service):
        """Test urdu is accepted, case-insensitively."""
        post = await service.create("Title", "<p>x</p>", language="Urdu")
        assert post.language == "urdu"

    async def test_seo_description_truncated(self, service):
        """Test derived description is capped at 150 characters."""
        content = "<p>" + ("word " * 100) + "</p>"
        post = await service.create("Long", content)
        assert len(post.seo_description) <= 150
        assert "<" not in post.seo_description

    async def test_explicit_seo_fields_kept(self, service):
        """Test explicit SEO overrides are stored as given."""
        post = await service.create(
            "Title", "<p>x</p>", seo_title="Custom", seo_description="Custom description"
        )
        assert post.seo_title == "Custom"
        assert post.seo_description == "Custom description"

    async def test_image_reference_normalized(self, service):
        """Test relative image paths are made root-relative."""
        relative = await service.create("One", "<p>x</p>", image="uploads/a.png")
        absolute = await service.create("Two", "<p>x</p>", image="https://cdn.example.com/b.png")

        assert relative.image == "/uploads/a.png"
        assert absolute.image == "https://cdn.example.com/b.png"


class TestSlugRace:
    """Tests for the constraint-backed retry when writers race for a slug."""

    async def test_create_retries_after_unique_violation(self, service):
        """Test a stale availability check is caught by the unique constraint."""
        await service.create("Hello World", "<p>first</p>")

        # Simulate a writer that checked availability before the first commit
        stale = AsyncMock(side_effect=["hello-world", "hello-world-2"])
        with patch.object(service, "_next_free_slug", stale):
            post = await service.create("Hello World", "<p>second</p>")

        assert post.slug == "hello-world-2"
        assert stale.await_count == 2
        slugs = sorted(p.slug for p in await service.list())
        assert slugs == ["hello-world", "hello-world-2"]

    async def test_create_gives_up_after_max_attempts(self, service):
        """Test persistent collisions surface as StoreError."""
        await service.create("Hello World", "<p>first</p>")

        always_taken = AsyncMock(return_value="hello-world")
        with patch.object(service, "_next_free_slug", always_taken):
            with pytest.raises(StoreError):
                await service.create("Hello World", "<p>second</p>")

        assert always_taken.await_count == MAX_SLUG_ATTEMPTS
        assert len(await service.list()) == 1

    async def test_update_retries_after_unique_violation(self, service):
        """Test a title change racing another post re-derives the suffix."""
        await service.create("Alpha", "<p>a</p>")
        beta = await service.create("Beta", "<p>b</p>")

        stale = AsyncMock(side_effect=["alpha", "alpha-2"])
        with patch.object(service, "_next_free_slug", stale):
            updated = await service.update(beta.id, {"title": "Alpha"})

        assert updated.title == "Alpha"
        assert updated.slug == "alpha-2"


# ============== Update ==============

class TestUpdate:
    """Tests for BlogService.update."""

    async def test_content_only_update_keeps_slug_and_created_at(self, service):
        """Test updating content leaves slug/createdAt and bumps updatedAt."""
        post = await service.create("Hello World", "<p>old</p>")
        original_slug = post.slug
        original_created = as_utc(post.created_at)
        original_updated = as_utc(post.updated_at)

        updated = await service.update(post.id, {"content": "<p>new</p>"})

        assert updated.content == "<p>new</p>"
        assert updated.slug == original_slug
        assert as_utc(updated.created_at) == original_created
        assert as_utc(updated.updated_at) > original_updated

    async def test_title_change_rederives_slug(self, service):
        """Test a new title produces a new slug."""
        post = await service.create("Old Title", "<p>x</p>")
        updated = await service.update(post.id, {"title": "New Title"})
        assert updated.slug == "new-title"

    async def test_same_title_keeps_slug(self, service):
        """Test re-sending the stored title does not touch the slug."""
        await service.create("Hello World", "<p>x</p>")
        second = await service.create("Hello World", "<p>y</p>")

        updated = await service.update(second.id, {"title": "Hello World"})

        assert updated.slug == "hello-world-2"

    async def test_title_change_excludes_own_slug(self, service):
        """Test a cosmetic title change keeps the post's own slug."""
        post = await service.create("Hello World", "<p>x</p>")
        updated = await service.update(post.id, {"title": "Hello, World!"})
        assert updated.slug == "hello-world"

    async def test_title_change_collision_disambiguated(self, service):
        """Test renaming onto an existing title gets a suffixed slug."""
        await service.create("Taken", "<p>x</p>")
        other = await service.create("Other", "<p>y</p>")

        updated = await service.update(other.id, {"title": "Taken"})

        assert updated.slug == "taken-2"

    async def test_omitted_fields_untouched(self, service):
        """Test partial update semantics."""
        post = await service.create(
            "Title", "<p>x</p>", language="urdu", seo_title="SEO", image="https://cdn/x.png"
        )
        updated = await service.update(post.id, {"seo_description": "Fresh"})

        assert updated.title == "Title"
        assert updated.language == "urdu"
        assert updated.seo_title == "SEO"
        assert updated.image == "https://cdn/x.png"
        assert updated.seo_description == "Fresh"

    async def test_invalid_language_on_update_coerced(self, service):
        """Test language coercion also applies to updates."""
        post = await service.create("Title", "<p>x</p>", language="urdu")
        updated = await service.update(post.id, {"language": "french"})
        assert updated.language == "english"

    async def test_empty_title_rejected(self, service):
        """Test a provided but empty title is a validation error."""
        post = await service.create("Title", "<p>x</p>")
        with pytest.raises(ValidationError):
            await service.update(post.id, {"title": "  "})

    async def test_unknown_id_raises_not_found(self, service):
        """Test updating a missing post."""
        with pytest.raises(NotFoundError):
            await service.update(uuid.uuid4(), {"content": "<p>x</p>"})

    async def test_malformed_id_raises_not_found(self, service):
        """Test a non-UUID id resolves to NotFoundError."""
        with pytest.raises(NotFoundError):
            await service.update("not-a-uuid", {"content": "<p>x</p>"})


# ============== Read / Delete ==============

class TestReadAndDelete:
    """Tests for lookups, listing and deletion."""

    async def test_get_by_slug_matches_input(self, service):
        """Test fields read back by slug match the create input."""
        created = await service.create(
            "Exact Match",
            "<p>Body</p>",
            language="urdu",
            seo_title="SEO title",
            seo_description="SEO description",
            image="https://cdn.example.com/cover.webp",
        )

        post = await service.get_by_slug("exact-match")

        assert post.id == created.id
        assert post.title == "Exact Match"
        assert post.content == "<p>Body</p>"
        assert post.language == "urdu"
        assert post.seo_title == "SEO title"
        assert post.seo_description == "SEO description"
        assert post.image == "https://cdn.example.com/cover.webp"
        assert as_utc(post.created_at) == as_utc(created.created_at)

    async def test_get_by_slug_missing(self, service):
        with pytest.raises(NotFoundError):
            await service.get_by_slug("nope")

    async def test_delete_then_get_fails(self, service):
        """Test delete(id) followed by get_by_id(id) raises NotFoundError."""
        post = await service.create("Gone", "<p>x</p>")
        await service.delete(post.id)

        with pytest.raises(NotFoundError):
            await service.get_by_id(post.id)

    async def test_delete_unknown_id_raises_not_found(self, service):
        """Test the delete policy: unknown ids are reported, not ignored."""
        with pytest.raises(NotFoundError):
            await service.delete(uuid.uuid4())

    async def test_list_newest_first(self, service):
        """Test posts created A, B, C are listed C, B, A."""
        for title in ("A", "B", "C"):
            await service.create(title, f"<p>{title}</p>")

        posts = await service.list()

        assert [p.title for p in posts] == ["C", "B", "A"]

    async def test_search_matches_title_and_content(self, service):
        """Test case-insensitive search over title and content."""
        await service.create("Python Tips", "<p>decorators</p>")
        await service.create("Cooking", "<p>Use PYTHON-free recipes</p>")
        await service.create("Gardening", "<p>soil</p>")

        results = await service.search("python")

        assert {p.title for p in results} == {"Python Tips", "Cooking"}

    async def test_sitemap_entries(self, service):
        """Test sitemap entries carry slug and last modification."""
        post = await service.create("Mapped", "<p>x</p>")
        entries = await service.sitemap_entries()
        assert [slug for slug, _ in entries] == [post.slug]


class TestStoreFailures:
    """Tests for database failure wrapping."""

    async def test_store_failure_wrapped(self):
        """Test SQLAlchemy errors surface as StoreError."""
        session = MagicMock()
        session.execute = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("down")))
        service = BlogService(session)

        with pytest.raises(StoreError):
            await service.list()

        with pytest.raises(StoreError):
            await service.sitemap_entries()
