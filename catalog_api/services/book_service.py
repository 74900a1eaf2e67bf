"""
Book consistency service.

Every book mutation runs its checks in a fixed order and writes nothing
unless all of them pass:

1. field rules (title, description, ISBN format, published date)
2. ISBN uniqueness
3. primary author exists and is live
4. co-author exists and is live, then differs from the primary author
5. persist

Author liveness is re-checked on every mutation that attaches an author.
Books are not revisited when one of their authors is later deleted.
"""

import structlog
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional
from uuid import UUID

from catalog_api.errors import CatalogError
from catalog_api.models.author import AuthorDB
from catalog_api.models.book import (
    AuthorBookStats,
    BookDB,
    BookFilter,
    CreateBookRequest,
    UpdateBookRequest,
)
from catalog_api.models.common import Page
from catalog_api.repositories.author_repo import AuthorRepository
from catalog_api.repositories.book_repo import BookRepository
from catalog_api.services.validation import (
    DEFAULT_LIMIT,
    validate_description,
    validate_isbn_format,
    validate_pagination,
    validate_published_date,
    validate_search_query,
    validate_title,
)
from shared.metrics import CatalogMetrics, get_catalog_metrics

logger = structlog.get_logger(__name__)

SAME_AUTHOR_MESSAGE = "Primary author and co-author cannot be the same person"


class BookService:
    """Service for book validation, lifecycle and authorship operations."""

    def __init__(
        self,
        book_repo: BookRepository,
        author_repo: AuthorRepository,
        metrics: Optional[CatalogMetrics] = None
    ):
        """
        Initialize book service.

        Args:
            book_repo: Book repository
            author_repo: Author repository, used for reference checks
            metrics: Catalog metrics (process-wide instance by default)
        """
        self.book_repo = book_repo
        self.author_repo = author_repo
        self.metrics = metrics or get_catalog_metrics()

    @contextmanager
    def _mutation(self, operation: str, **context: Any) -> Iterator[None]:
        with self.metrics.track("book", operation):
            try:
                yield
            except CatalogError as e:
                logger.warning(
                    f"book_{operation}_rejected",
                    error_code=e.error_code,
                    field=e.field,
                    reason=e.message,
                    **context
                )
                raise

    # ------------------------------------------------------------------
    # Guard clauses
    # ------------------------------------------------------------------

    async def _get_live(self, book_id: UUID) -> BookDB:
        book = await self.book_repo.find_by_id(book_id)
        if book is None or book.is_deleted:
            raise CatalogError.not_found("Book")
        return book

    async def _ensure_isbn_available(self, isbn: str, exclude_id: Optional[UUID] = None) -> None:
        existing = await self.book_repo.find_by_isbn(isbn)
        if existing is not None and existing.id != exclude_id:
            raise CatalogError.conflict("A book with this ISBN already exists", field="isbn")

    async def _require_active_author(
        self,
        author_id: UUID,
        resource: str,
        role: str,
        field: str
    ) -> AuthorDB:
        """
        Resolve an author about to be attached to a book.

        Args:
            author_id: Author ID
            resource: Name used in the not-found message
            role: Role named in the deleted-author message
            field: Request field the id came from

        Raises:
            CatalogError: NOT_FOUND if missing, VALIDATION if soft-deleted
        """
        author = await self.author_repo.find_by_id(author_id)
        if author is None:
            raise CatalogError.not_found(resource, field=field)
        if author.is_deleted:
            raise CatalogError.validation(f"Cannot assign a deleted author as {role}", field=field)
        return author

    @staticmethod
    def _ensure_distinct(primary_author_id: Optional[UUID], co_author_id: Optional[UUID]) -> None:
        if co_author_id is not None and co_author_id == primary_author_id:
            raise CatalogError.validation(SAME_AUTHOR_MESSAGE, field="co_author_id")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, request: CreateBookRequest) -> BookDB:
        """
        Create a book.

        Args:
            request: Book fields

        Returns:
            Created book with embedded author records

        Raises:
            CatalogError: VALIDATION, NOT_FOUND (author) or CONFLICT (ISBN)
        """
        with self._mutation("create"):
            title = validate_title(request.title)
            description = validate_description(request.description)
            isbn = validate_isbn_format(request.isbn)
            published_date = validate_published_date(request.published_date)
            if request.primary_author_id is None:
                raise CatalogError.validation("Primary author is required", field="primary_author_id")

            if isbn:
                await self._ensure_isbn_available(isbn)

            await self._require_active_author(
                request.primary_author_id, "Primary author", "primary author", "primary_author_id"
            )

            if request.co_author_id is not None:
                await self._require_active_author(
                    request.co_author_id, "Co-author", "co-author", "co_author_id"
                )
                self._ensure_distinct(request.primary_author_id, request.co_author_id)

            book = await self.book_repo.create({
                "title": title,
                "description": description,
                "isbn": isbn,
                "published_date": published_date,
                "primary_author_id": request.primary_author_id,
                "co_author_id": request.co_author_id,
            })

        logger.info(
            "book_created",
            book_id=str(book.id),
            primary_author_id=str(book.primary_author_id),
            co_author_id=str(book.co_author_id) if book.co_author_id else None
        )
        return book

    async def update(self, book_id: UUID, request: UpdateBookRequest) -> BookDB:
        """
        Apply a partial update to a live book.

        Only supplied fields are validated and written. A lone
        ``primary_author_id`` or ``co_author_id`` is compared against the
        stored value of the other. ``co_author_id``, ``description``,
        ``isbn`` and ``published_date`` may be cleared with ``null``;
        ``title`` and ``primary_author_id`` may not.

        Args:
            book_id: Book ID
            request: Fields to change

        Returns:
            Updated book

        Raises:
            CatalogError: NOT_FOUND, VALIDATION or CONFLICT
        """
        with self._mutation("update", book_id=str(book_id)):
            current = await self._get_live(book_id)
            supplied = request.supplied()
            fields: Dict[str, Any] = {}

            if "title" in supplied:
                fields["title"] = validate_title(supplied["title"])
            if "description" in supplied:
                fields["description"] = validate_description(supplied["description"])
            if "isbn" in supplied:
                fields["isbn"] = validate_isbn_format(supplied["isbn"])
            if "published_date" in supplied:
                fields["published_date"] = validate_published_date(supplied["published_date"])
            if "primary_author_id" in supplied and supplied["primary_author_id"] is None:
                raise CatalogError.validation("Primary author is required", field="primary_author_id")

            both_authors = "primary_author_id" in supplied and "co_author_id" in supplied
            if both_authors:
                self._ensure_distinct(supplied["primary_author_id"], supplied["co_author_id"])

            if fields.get("isbn"):
                await self._ensure_isbn_available(fields["isbn"], exclude_id=book_id)

            if "primary_author_id" in supplied:
                fields["primary_author_id"] = supplied["primary_author_id"]
                await self._require_active_author(
                    fields["primary_author_id"], "Primary author", "primary author", "primary_author_id"
                )
                if not both_authors:
                    self._ensure_distinct(fields["primary_author_id"], current.co_author_id)

            if "co_author_id" in supplied:
                fields["co_author_id"] = supplied["co_author_id"]
                if fields["co_author_id"] is not None:
                    await self._require_active_author(
                        fields["co_author_id"], "Co-author", "co-author", "co_author_id"
                    )
                    if not both_authors:
                        self._ensure_distinct(current.primary_author_id, fields["co_author_id"])

            if not fields:
                logger.debug("book_update_empty", book_id=str(book_id))
                return current

            book = await self.book_repo.update(book_id, fields)
            if book is None:
                raise CatalogError.not_found("Book")

        logger.info("book_updated", book_id=str(book_id), fields=sorted(fields))
        return book

    async def update_co_author(self, book_id: UUID, co_author_id: Optional[UUID]) -> BookDB:
        """
        Set or clear a book's co-author.

        Args:
            book_id: Book ID
            co_author_id: Live author distinct from the primary, or None to clear

        Returns:
            Updated book
        """
        with self._mutation("update_co_author", book_id=str(book_id)):
            current = await self._get_live(book_id)

            if co_author_id is not None:
                await self._require_active_author(co_author_id, "Co-author", "co-author", "co_author_id")
                self._ensure_distinct(current.primary_author_id, co_author_id)

            book = await self.book_repo.update_co_author(book_id, co_author_id)
            if book is None:
                raise CatalogError.not_found("Book")

        logger.info(
            "book_co_author_updated",
            book_id=str(book_id),
            co_author_id=str(co_author_id) if co_author_id else None
        )
        return book

    async def transfer_authorship(self, book_id: UUID, new_primary_author_id: UUID) -> BookDB:
        """
        Reassign a book's primary author.

        The co-author is left as it is, so the new primary author may not be
        the current co-author; clear or change the co-author first.

        Args:
            book_id: Book ID
            new_primary_author_id: Live author to become primary

        Returns:
            Updated book

        Raises:
            CatalogError: NOT_FOUND (book or author), VALIDATION (deleted
                author, or current co-author)
        """
        with self._mutation("transfer_authorship", book_id=str(book_id)):
            if new_primary_author_id is None:
                raise CatalogError.validation(
                    "New primary author ID is required", field="new_primary_author_id"
                )

            current = await self._get_live(book_id)
            await self._require_active_author(
                new_primary_author_id, "New primary author", "primary author", "new_primary_author_id"
            )

            if current.co_author_id == new_primary_author_id:
                raise CatalogError.validation(
                    "Cannot transfer authorship to the current co-author",
                    field="new_primary_author_id"
                )

            book = await self.book_repo.transfer_authorship(book_id, new_primary_author_id)
            if book is None:
                raise CatalogError.not_found("Book")

        logger.info(
            "authorship_transferred",
            book_id=str(book_id),
            from_author_id=str(current.primary_author_id),
            to_author_id=str(new_primary_author_id)
        )
        return book

    async def soft_delete(self, book_id: UUID) -> BookDB:
        """Soft-delete a live book."""
        with self._mutation("soft_delete", book_id=str(book_id)):
            await self._get_live(book_id)
            book = await self.book_repo.soft_delete(book_id)
            if book is None:
                raise CatalogError.not_found("Book")

        logger.info("book_soft_deleted", book_id=str(book_id))
        return book

    async def restore(self, book_id: UUID) -> BookDB:
        """Clear a book's deletion timestamp. The book must exist."""
        with self._mutation("restore", book_id=str(book_id)):
            book = await self.book_repo.restore(book_id)
            if book is None:
                raise CatalogError.not_found("Book")

        logger.info("book_restored", book_id=str(book_id))
        return book

    async def hard_delete(self, book_id: UUID) -> BookDB:
        """Permanently remove a book (privileged)."""
        with self._mutation("hard_delete", book_id=str(book_id)):
            book = await self.book_repo.hard_delete(book_id)
            if book is None:
                raise CatalogError.not_found("Book")

        logger.warning("book_hard_deleted", book_id=str(book_id))
        return book

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, book_id: UUID) -> BookDB:
        """
        Get a live book with its authors.

        Raises:
            CatalogError: NOT_FOUND if missing or soft-deleted
        """
        book = await self._get_live(book_id)
        logger.debug("book_retrieved", book_id=str(book_id))
        return book

    async def list(
        self,
        search: Optional[str] = None,
        author_id: Optional[UUID] = None,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
        include_deleted: bool = False
    ) -> Page[BookDB]:
        """
        List books, newest first.

        Args:
            search: Case-insensitive substring of title or description
            author_id: Match books where this author is primary or co-author
            limit: Page size, 1 to 100
            offset: Records to skip, non-negative
            include_deleted: Include soft-deleted books

        Returns:
            Page with the total count for the same filter
        """
        validate_pagination(limit, offset)
        filter = BookFilter(
            search=search.strip() if search and search.strip() else None,
            author_id=author_id,
            include_deleted=include_deleted
        )

        books = await self.book_repo.find_many(filter, limit=limit, offset=offset)
        total = await self.book_repo.count(filter)

        logger.debug("books_listed", count=len(books), total=total, limit=limit, offset=offset)
        return Page[BookDB](data=books, total=total, limit=limit, offset=offset)

    async def search(
        self,
        query: str,
        author_id: Optional[UUID] = None,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0
    ) -> Page[BookDB]:
        """Search live books by title or description (query of at least 2 characters)."""
        return await self.list(
            search=validate_search_query(query),
            author_id=author_id,
            limit=limit,
            offset=offset
        )

    async def list_by_author(
        self,
        author_id: UUID,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0
    ) -> Page[BookDB]:
        """List live books where the author is primary or co-author."""
        if author_id is None:
            raise CatalogError.validation("Author ID is required", field="author_id")
        return await self.list(author_id=author_id, limit=limit, offset=offset)

    async def author_stats(self, author_id: UUID) -> AuthorBookStats:
        """
        Count an author's live books by role.

        Raises:
            CatalogError: NOT_FOUND if the author row does not exist
        """
        if not await self.author_repo.exists(author_id):
            raise CatalogError.not_found("Author")
        return await self.book_repo.count_by_author(author_id)
