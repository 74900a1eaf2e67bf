"""
Unit tests for the authorship transfer protocol.

Tests cover:
- Transfer to a live author replaces only the primary author
- Transfer to the current co-author is rejected without changes
- Missing or deleted target authors
- The full co-author clear-then-transfer sequence
"""

import pytest
from uuid import uuid4

from catalog_api.errors import CatalogError, ErrorKind
from catalog_api.models.author import CreateAuthorRequest
from catalog_api.models.book import CreateBookRequest


@pytest.fixture
def names():
    return ["Author A", "Author B", "Author C"]


class TestTransferAuthorship:
    """Test transfer_authorship."""

    @pytest.mark.asyncio
    async def test_transfer_keeps_co_author(self, author_service, book_service, names):
        a, b, c = [await author_service.create(CreateAuthorRequest(name=n)) for n in names]
        book = await book_service.create(
            CreateBookRequest(title="Handoff", primary_author_id=a.id, co_author_id=b.id)
        )

        moved = await book_service.transfer_authorship(book.id, c.id)

        assert moved.primary_author_id == c.id
        assert moved.co_author_id == b.id
        assert moved.primary_author.name == "Author C"
        assert moved.title == "Handoff"

    @pytest.mark.asyncio
    async def test_transfer_to_current_co_author_rejected(self, author_service, book_service, names):
        """Test the book is unchanged after a rejected transfer"""
        a, b, _ = [await author_service.create(CreateAuthorRequest(name=n)) for n in names]
        book = await book_service.create(
            CreateBookRequest(title="Pair", primary_author_id=a.id, co_author_id=b.id)
        )

        with pytest.raises(CatalogError) as exc_info:
            await book_service.transfer_authorship(book.id, b.id)

        assert exc_info.value.kind == ErrorKind.VALIDATION
        assert exc_info.value.message == "Cannot transfer authorship to the current co-author"

        unchanged = await book_service.get(book.id)
        assert unchanged.primary_author_id == a.id
        assert unchanged.co_author_id == b.id

    @pytest.mark.asyncio
    async def test_transfer_to_missing_author(self, author_service, book_service):
        a = await author_service.create(CreateAuthorRequest(name="Author A"))
        book = await book_service.create(CreateBookRequest(title="Solo", primary_author_id=a.id))

        with pytest.raises(CatalogError) as exc_info:
            await book_service.transfer_authorship(book.id, uuid4())

        assert exc_info.value.kind == ErrorKind.NOT_FOUND
        assert exc_info.value.message == "New primary author not found"

    @pytest.mark.asyncio
    async def test_transfer_to_deleted_author(self, author_service, book_service, names):
        a, b, _ = [await author_service.create(CreateAuthorRequest(name=n)) for n in names]
        book = await book_service.create(CreateBookRequest(title="Solo", primary_author_id=a.id))
        await author_service.soft_delete(b.id)

        with pytest.raises(CatalogError) as exc_info:
            await book_service.transfer_authorship(book.id, b.id)

        assert exc_info.value.kind == ErrorKind.VALIDATION
        assert exc_info.value.message == "Cannot assign a deleted author as primary author"

    @pytest.mark.asyncio
    async def test_transfer_on_missing_book(self, author_service, book_service):
        a = await author_service.create(CreateAuthorRequest(name="Author A"))

        with pytest.raises(CatalogError) as exc_info:
            await book_service.transfer_authorship(uuid4(), a.id)

        assert exc_info.value.message == "Book not found"

    @pytest.mark.asyncio
    async def test_transfer_to_same_primary_is_a_no_op_write(self, author_service, book_service):
        a = await author_service.create(CreateAuthorRequest(name="Author A"))
        book = await book_service.create(CreateBookRequest(title="Solo", primary_author_id=a.id))

        again = await book_service.transfer_authorship(book.id, a.id)

        assert again.primary_author_id == a.id

    @pytest.mark.asyncio
    async def test_clear_co_author_then_transfer(self, author_service, book_service, names):
        """Test the full handoff from A to B when B starts as co-author"""
        a, b, _ = [await author_service.create(CreateAuthorRequest(name=n)) for n in names]
        book = await book_service.create(
            CreateBookRequest(title="Handoff", primary_author_id=a.id, co_author_id=b.id)
        )

        with pytest.raises(CatalogError):
            await book_service.transfer_authorship(book.id, b.id)

        await book_service.update_co_author(book.id, None)
        moved = await book_service.transfer_authorship(book.id, b.id)

        assert moved.primary_author_id == b.id
        assert moved.co_author_id is None
        assert moved.co_author is None

    @pytest.mark.asyncio
    async def test_distinct_authors_hold_after_every_mutation(self, author_service, book_service, names):
        a, b, c = [await author_service.create(CreateAuthorRequest(name=n)) for n in names]
        book = await book_service.create(
            CreateBookRequest(title="Rotating", primary_author_id=a.id, co_author_id=b.id)
        )

        results = [
            await book_service.transfer_authorship(book.id, c.id),
            await book_service.update_co_author(book.id, a.id),
            await book_service.update_co_author(book.id, None),
            await book_service.transfer_authorship(book.id, b.id),
        ]

        for result in results:
            assert result.co_author_id is None or result.co_author_id != result.primary_author_id
