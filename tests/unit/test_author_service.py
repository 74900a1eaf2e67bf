"""
Unit tests for the author service.

Tests cover:
- Creation with field validation and email uniqueness
- Partial updates (absent vs. explicit null fields)
- Soft delete, restore and hard delete
- Listing, search and pagination totals
- Statistics and mutation metrics
"""

import pytest
from uuid import uuid4

from catalog_api.errors import CatalogError, ErrorKind
from catalog_api.models.author import AuthorFilter, CreateAuthorRequest, UpdateAuthorRequest
from catalog_api.models.book import CreateBookRequest


def _sample(metrics, name, labels):
    value = metrics.registry.get_sample_value(name, labels)
    return value or 0.0


class TestCreateAuthor:
    """Test author creation."""

    @pytest.mark.asyncio
    async def test_create_author(self, author_service):
        """Test a valid author is created with stripped name"""
        author = await author_service.create(
            CreateAuthorRequest(name="  Octavia Butler ", bio="Kindred", email="octavia@example.com")
        )

        assert author.name == "Octavia Butler"
        assert author.email == "octavia@example.com"
        assert author.deleted_at is None

    @pytest.mark.asyncio
    async def test_empty_optional_fields_stored_as_null(self, author_service):
        author = await author_service.create(CreateAuthorRequest(name="Borges", bio="", email=""))

        assert author.bio is None
        assert author.email is None

    @pytest.mark.asyncio
    async def test_email_findable_and_unique(self, author_service, author_repo):
        """Test a created email is findable and cannot be reused"""
        created = await author_service.create(CreateAuthorRequest(name="Ann", email="ann@example.com"))

        found = await author_repo.find_by_email("ann@example.com")
        assert found.id == created.id

        with pytest.raises(CatalogError) as exc_info:
            await author_service.create(CreateAuthorRequest(name="Another Ann", email="ann@example.com"))

        assert exc_info.value.kind == ErrorKind.CONFLICT
        assert exc_info.value.message == "An author with this email already exists"
        assert await author_repo.count(AuthorFilter(include_deleted=True)) == 1

    @pytest.mark.asyncio
    async def test_email_of_deleted_author_can_be_reused(self, author_service):
        first = await author_service.create(CreateAuthorRequest(name="Old", email="shared@example.com"))
        await author_service.soft_delete(first.id)

        second = await author_service.create(CreateAuthorRequest(name="New", email="shared@example.com"))
        assert second.email == "shared@example.com"

    @pytest.mark.asyncio
    async def test_invalid_fields_do_not_write(self, author_service, author_repo):
        """Test validation failures abort before any write"""
        with pytest.raises(CatalogError) as exc_info:
            await author_service.create(CreateAuthorRequest(name="X"))
        assert exc_info.value.kind == ErrorKind.VALIDATION

        with pytest.raises(CatalogError, match="Invalid email format"):
            await author_service.create(CreateAuthorRequest(name="Valid Name", email="bad"))

        assert author_repo.writes == 0

    @pytest.mark.asyncio
    async def test_metrics_recorded(self, author_service, catalog_metrics):
        await author_service.create(CreateAuthorRequest(name="Counted"))
        with pytest.raises(CatalogError):
            await author_service.create(CreateAuthorRequest(name="C"))

        assert _sample(catalog_metrics, "catalog_mutations_total", {"entity": "author", "operation": "create"}) == 1
        assert _sample(
            catalog_metrics,
            "catalog_mutations_rejected_total",
            {"entity": "author", "operation": "create", "error_code": "validation_error"}
        ) == 1


class TestUpdateAuthor:
    """Test partial author updates."""

    @pytest.mark.asyncio
    async def test_update_only_supplied_fields(self, author_service):
        author = await author_service.create(
            CreateAuthorRequest(name="Ursula", bio="Earthsea", email="u@example.com")
        )

        updated = await author_service.update(author.id, UpdateAuthorRequest(name="Ursula K. Le Guin"))

        assert updated.name == "Ursula K. Le Guin"
        assert updated.bio == "Earthsea"
        assert updated.email == "u@example.com"

    @pytest.mark.asyncio
    async def test_explicit_null_clears_field(self, author_service):
        author = await author_service.create(CreateAuthorRequest(name="Ursula", email="u@example.com"))

        updated = await author_service.update(author.id, UpdateAuthorRequest(email=None))

        assert updated.email is None

    @pytest.mark.asyncio
    async def test_null_name_rejected(self, author_service):
        author = await author_service.create(CreateAuthorRequest(name="Ursula"))

        with pytest.raises(CatalogError) as exc_info:
            await author_service.update(author.id, UpdateAuthorRequest(name=None))

        assert exc_info.value.field == "name"

    @pytest.mark.asyncio
    async def test_keeping_own_email_is_allowed(self, author_service):
        author = await author_service.create(CreateAuthorRequest(name="Ursula", email="u@example.com"))

        updated = await author_service.update(author.id, UpdateAuthorRequest(email="u@example.com"))

        assert updated.email == "u@example.com"

    @pytest.mark.asyncio
    async def test_taking_another_email_conflicts(self, author_service):
        await author_service.create(CreateAuthorRequest(name="First", email="first@example.com"))
        second = await author_service.create(CreateAuthorRequest(name="Second", email="second@example.com"))

        with pytest.raises(CatalogError) as exc_info:
            await author_service.update(second.id, UpdateAuthorRequest(email="first@example.com"))

        assert exc_info.value.kind == ErrorKind.CONFLICT

    @pytest.mark.asyncio
    async def test_empty_update_does_not_write(self, author_service, author_repo):
        author = await author_service.create(CreateAuthorRequest(name="Unchanged"))
        writes = author_repo.writes

        result = await author_service.update(author.id, UpdateAuthorRequest())

        assert result.id == author.id
        assert author_repo.writes == writes

    @pytest.mark.asyncio
    async def test_update_missing_or_deleted_author(self, author_service):
        with pytest.raises(CatalogError) as exc_info:
            await author_service.update(uuid4(), UpdateAuthorRequest(name="Nobody"))
        assert exc_info.value.kind == ErrorKind.NOT_FOUND
        assert exc_info.value.message == "Author not found"

        author = await author_service.create(CreateAuthorRequest(name="Gone"))
        await author_service.soft_delete(author.id)

        with pytest.raises(CatalogError) as exc_info:
            await author_service.update(author.id, UpdateAuthorRequest(name="Back"))
        assert exc_info.value.kind == ErrorKind.NOT_FOUND


class TestAuthorLifecycle:
    """Test soft delete, restore and hard delete."""

    @pytest.mark.asyncio
    async def test_soft_delete_and_restore(self, author_service):
        author = await author_service.create(CreateAuthorRequest(name="Cycle"))

        deleted = await author_service.soft_delete(author.id)
        assert deleted.deleted_at is not None
        assert await author_service.exists(author.id)

        with pytest.raises(CatalogError):
            await author_service.get(author.id)

        restored = await author_service.restore(author.id)
        assert restored.deleted_at is None
        assert (await author_service.get(author.id)).id == author.id

    @pytest.mark.asyncio
    async def test_soft_delete_twice_not_found(self, author_service):
        author = await author_service.create(CreateAuthorRequest(name="Twice"))
        await author_service.soft_delete(author.id)

        with pytest.raises(CatalogError) as exc_info:
            await author_service.soft_delete(author.id)

        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_restore_missing_author(self, author_service):
        with pytest.raises(CatalogError) as exc_info:
            await author_service.restore(uuid4())

        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_restore_conflicts_when_email_reused(self, author_service):
        """Test restoring cannot produce two live authors with one email"""
        old = await author_service.create(CreateAuthorRequest(name="Old", email="same@example.com"))
        await author_service.soft_delete(old.id)
        await author_service.create(CreateAuthorRequest(name="New", email="same@example.com"))

        with pytest.raises(CatalogError) as exc_info:
            await author_service.restore(old.id)

        assert exc_info.value.kind == ErrorKind.CONFLICT

    @pytest.mark.asyncio
    async def test_hard_delete(self, author_service):
        author = await author_service.create(CreateAuthorRequest(name="Erased"))

        await author_service.hard_delete(author.id)

        assert not await author_service.exists(author.id)
        with pytest.raises(CatalogError) as exc_info:
            await author_service.hard_delete(author.id)
        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_hard_delete_referenced_author_conflicts(self, author_service, book_service):
        author = await author_service.create(CreateAuthorRequest(name="Referenced"))
        await book_service.create(CreateBookRequest(title="Held", primary_author_id=author.id))

        with pytest.raises(CatalogError) as exc_info:
            await author_service.hard_delete(author.id)

        assert exc_info.value.kind == ErrorKind.CONFLICT
        assert await author_service.exists(author.id)


class TestListAuthors:
    """Test listing, search and statistics."""

    @pytest.mark.asyncio
    async def test_pagination_totals(self, author_service):
        for i in range(5):
            await author_service.create(CreateAuthorRequest(name=f"Author {i}"))

        first = await author_service.list(limit=20, offset=0)
        assert first.total == 5
        assert len(first.data) == 5

        beyond = await author_service.list(limit=20, offset=10)
        assert beyond.total == 5
        assert beyond.data == []

    @pytest.mark.asyncio
    async def test_newest_first(self, author_service):
        await author_service.create(CreateAuthorRequest(name="Older"))
        await author_service.create(CreateAuthorRequest(name="Newer"))

        page = await author_service.list()

        assert [a.name for a in page.data] == ["Newer", "Older"]

    @pytest.mark.asyncio
    async def test_search_name_or_bio_case_insensitive(self, author_service):
        await author_service.create(CreateAuthorRequest(name="Mary Shelley", bio="Frankenstein"))
        await author_service.create(CreateAuthorRequest(name="Bram Stoker", bio="Dracula"))

        by_name = await author_service.list(search="SHELL")
        by_bio = await author_service.list(search="dracula")

        assert [a.name for a in by_name.data] == ["Mary Shelley"]
        assert [a.name for a in by_bio.data] == ["Bram Stoker"]
        assert by_name.total == 1

    @pytest.mark.asyncio
    async def test_deleted_excluded_unless_requested(self, author_service):
        author = await author_service.create(CreateAuthorRequest(name="Hidden"))
        await author_service.create(CreateAuthorRequest(name="Visible"))
        await author_service.soft_delete(author.id)

        assert (await author_service.list()).total == 1
        assert (await author_service.list(include_deleted=True)).total == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit,offset", [(0, 0), (101, 0), (20, -1)])
    async def test_out_of_range_pagination_rejected(self, author_service, limit, offset):
        with pytest.raises(CatalogError) as exc_info:
            await author_service.list(limit=limit, offset=offset)

        assert exc_info.value.kind == ErrorKind.VALIDATION

    @pytest.mark.asyncio
    async def test_search_requires_two_characters(self, author_service):
        with pytest.raises(CatalogError) as exc_info:
            await author_service.search("a")

        assert exc_info.value.field == "q"

    @pytest.mark.asyncio
    async def test_stats(self, author_service):
        kept = await author_service.create(CreateAuthorRequest(name="Kept"))
        gone = await author_service.create(CreateAuthorRequest(name="Gone"))
        await author_service.soft_delete(gone.id)

        stats = await author_service.stats()

        assert stats.total_authors == 2
        assert stats.active_authors == 1
        assert stats.deleted_authors == 1
        assert kept.id != gone.id
