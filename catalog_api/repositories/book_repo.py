"""
Book repository for database operations.

Provides async CRUD operations for books using asyncpg with PostgreSQL.
Every read joins the primary author and co-author so returned records carry
their resolved author references.

Storage constraint violations are translated into ``CatalogError``:
- duplicate ISBN (unique constraint) -> CONFLICT
- equal primary and co-author (check constraint) -> VALIDATION
- dangling author reference (foreign key) -> NOT_FOUND
"""

import asyncpg
import structlog
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
from contextlib import asynccontextmanager

from catalog_api.errors import CatalogError
from catalog_api.models.author import AuthorDB
from catalog_api.models.book import AuthorBookStats, BookDB, BookFilter
from catalog_api.repositories.author_repo import escape_like

logger = structlog.get_logger(__name__)

BOOK_COLUMNS = (
    "id", "title", "description", "isbn", "published_date",
    "primary_author_id", "co_author_id", "created_at", "updated_at", "deleted_at",
)
AUTHOR_COLUMNS = ("id", "name", "bio", "email", "created_at", "updated_at", "deleted_at")

UPDATABLE_FIELDS = (
    "title", "description", "isbn", "published_date", "primary_author_id", "co_author_id",
)

SELECT_BOOKS = (
    "SELECT "
    + ", ".join(f"b.{c}" for c in BOOK_COLUMNS) + ", "
    + ", ".join(f"pa.{c} AS pa_{c}" for c in AUTHOR_COLUMNS) + ", "
    + ", ".join(f"ca.{c} AS ca_{c}" for c in AUTHOR_COLUMNS)
    + " FROM books b"
    + " JOIN authors pa ON pa.id = b.primary_author_id"
    + " LEFT JOIN authors ca ON ca.id = b.co_author_id"
)


def _embedded_author(row: asyncpg.Record, prefix: str) -> Optional[AuthorDB]:
    if row[f"{prefix}_id"] is None:
        return None
    return AuthorDB(**{c: row[f"{prefix}_{c}"] for c in AUTHOR_COLUMNS})


def row_to_book(row: asyncpg.Record) -> BookDB:
    return BookDB(
        **{c: row[c] for c in BOOK_COLUMNS},
        primary_author=_embedded_author(row, "pa"),
        co_author=_embedded_author(row, "ca")
    )


def _classify_write_error(e: asyncpg.PostgresError) -> CatalogError:
    if isinstance(e, asyncpg.UniqueViolationError):
        return CatalogError.conflict("A book with this ISBN already exists", field="isbn")
    if isinstance(e, asyncpg.CheckViolationError):
        return CatalogError.validation(
            "Primary author and co-author cannot be the same person",
            field="co_author_id"
        )
    return CatalogError.not_found("Author")


class BookRepository:
    """Repository for book database operations."""

    def __init__(self, pool: asyncpg.Pool):
        """
        Initialize book repository.

        Args:
            pool: asyncpg connection pool
        """
        self.pool = pool

    @asynccontextmanager
    async def transaction(self):
        """
        Context manager for database transactions.

        Yields:
            asyncpg.Connection: Database connection
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    @staticmethod
    def _build_where(filter: BookFilter) -> Tuple[str, List[Any]]:
        where_clauses = []
        params: List[Any] = []

        if filter.search:
            params.append(f"%{escape_like(filter.search)}%")
            where_clauses.append(
                f"(b.title ILIKE ${len(params)} OR b.description ILIKE ${len(params)})"
            )

        if filter.author_id is not None:
            params.append(filter.author_id)
            where_clauses.append(
                f"(b.primary_author_id = ${len(params)} OR b.co_author_id = ${len(params)})"
            )

        if not filter.include_deleted:
            where_clauses.append("b.deleted_at IS NULL")

        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        return where_sql, params

    @staticmethod
    async def _fetch_one(conn: asyncpg.Connection, book_id: UUID) -> Optional[BookDB]:
        row = await conn.fetchrow(f"{SELECT_BOOKS} WHERE b.id = $1", book_id)
        return row_to_book(row) if row else None

    async def create(self, fields: Dict[str, Any]) -> BookDB:
        """
        Create a new book.

        Args:
            fields: Column values (title, description, isbn, published_date,
                primary_author_id, co_author_id)

        Returns:
            Created book with embedded authors

        Raises:
            CatalogError: On ISBN conflict, author distinctness or dangling reference
        """
        try:
            async with self.transaction() as conn:
                book_id = await conn.fetchval(
                    """
                    INSERT INTO books (
                        title, description, isbn, published_date,
                        primary_author_id, co_author_id, created_at, updated_at
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, NOW(), NOW())
                    RETURNING id
                    """,
                    fields["title"],
                    fields.get("description"),
                    fields.get("isbn"),
                    fields.get("published_date"),
                    fields["primary_author_id"],
                    fields.get("co_author_id")
                )

                logger.info("book_row_inserted", book_id=str(book_id))
                return await self._fetch_one(conn, book_id)

        except (
            asyncpg.UniqueViolationError,
            asyncpg.CheckViolationError,
            asyncpg.ForeignKeyViolationError,
        ) as e:
            logger.warning("book_create_constraint_violation", constraint=getattr(e, "constraint_name", None))
            raise _classify_write_error(e)
        except Exception as e:
            logger.error("book_create_failed", error=str(e))
            raise

    async def find_by_id(self, book_id: UUID) -> Optional[BookDB]:
        """
        Get book by ID, soft-deleted or not.

        Args:
            book_id: Book ID

        Returns:
            Book or None if not found
        """
        try:
            async with self.pool.acquire() as conn:
                book = await self._fetch_one(conn, book_id)
                if book is None:
                    logger.debug("book_not_found", book_id=str(book_id))
                return book

        except Exception as e:
            logger.error("book_get_by_id_failed", error=str(e), book_id=str(book_id))
            raise

    async def find_by_isbn(self, isbn: str) -> Optional[BookDB]:
        """
        Get the book carrying an ISBN, including soft-deleted books.

        Args:
            isbn: ISBN as stored

        Returns:
            Book or None
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(f"{SELECT_BOOKS} WHERE b.isbn = $1", isbn)
            return row_to_book(row) if row else None

    async def find_many(
        self,
        filter: BookFilter,
        limit: int = 20,
        offset: int = 0
    ) -> List[BookDB]:
        """
        List books matching a filter, newest first.

        Args:
            filter: Filter parameters
            limit: Maximum number of books to return
            offset: Number of books to skip

        Returns:
            List of books
        """
        where_sql, params = self._build_where(filter)
        params.extend([limit, offset])

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    {SELECT_BOOKS}
                    {where_sql}
                    ORDER BY b.created_at DESC, b.id
                    LIMIT ${len(params) - 1} OFFSET ${len(params)}
                    """,
                    *params
                )
                return [row_to_book(row) for row in rows]

        except Exception as e:
            logger.error("book_list_failed", error=str(e), filter=filter.model_dump(mode="json"))
            raise

    async def count(self, filter: BookFilter) -> int:
        """
        Count books matching a filter.

        Args:
            filter: Filter parameters

        Returns:
            Number of matching books
        """
        where_sql, params = self._build_where(filter)

        try:
            async with self.pool.acquire() as conn:
                return await conn.fetchval(
                    f"SELECT COUNT(*) FROM books b {where_sql}",
                    *params
                )

        except Exception as e:
            logger.error("book_count_failed", error=str(e), filter=filter.model_dump(mode="json"))
            raise

    async def update(self, book_id: UUID, fields: Dict[str, Any]) -> Optional[BookDB]:
        """
        Update the given columns of a book.

        Args:
            book_id: Book ID
            fields: Column values to write

        Returns:
            Updated book or None if not found

        Raises:
            CatalogError: On ISBN conflict, author distinctness or dangling reference
        """
        updates = []
        params: List[Any] = []

        for column in UPDATABLE_FIELDS:
            if column in fields:
                params.append(fields[column])
                updates.append(f"{column} = ${len(params)}")

        if not updates:
            return await self.find_by_id(book_id)

        updates.append("updated_at = NOW()")
        params.append(book_id)

        try:
            async with self.transaction() as conn:
                updated_id = await conn.fetchval(
                    f"""
                    UPDATE books
                    SET {', '.join(updates)}
                    WHERE id = ${len(params)}
                    RETURNING id
                    """,
                    *params
                )

                if updated_id is None:
                    logger.debug("book_not_found", book_id=str(book_id))
                    return None

                return await self._fetch_one(conn, updated_id)

        except (
            asyncpg.UniqueViolationError,
            asyncpg.CheckViolationError,
            asyncpg.ForeignKeyViolationError,
        ) as e:
            logger.warning("book_update_constraint_violation", book_id=str(book_id))
            raise _classify_write_error(e)
        except Exception as e:
            logger.error("book_update_failed", error=str(e), book_id=str(book_id))
            raise

    async def update_co_author(self, book_id: UUID, co_author_id: Optional[UUID]) -> Optional[BookDB]:
        """Set or clear the co-author of a book."""
        return await self.update(book_id, {"co_author_id": co_author_id})

    async def transfer_authorship(self, book_id: UUID, new_primary_author_id: UUID) -> Optional[BookDB]:
        """Replace the primary author of a book, leaving the co-author as is."""
        return await self.update(book_id, {"primary_author_id": new_primary_author_id})

    async def _set_deleted_at(self, book_id: UUID, deleted: bool) -> Optional[BookDB]:
        async with self.transaction() as conn:
            updated_id = await conn.fetchval(
                f"""
                UPDATE books
                SET deleted_at = {'NOW()' if deleted else 'NULL'}, updated_at = NOW()
                WHERE id = $1
                RETURNING id
                """,
                book_id
            )
            if updated_id is None:
                return None
            return await self._fetch_one(conn, updated_id)

    async def soft_delete(self, book_id: UUID) -> Optional[BookDB]:
        """Mark a book deleted."""
        return await self._set_deleted_at(book_id, deleted=True)

    async def restore(self, book_id: UUID) -> Optional[BookDB]:
        """Clear a book's deletion timestamp."""
        return await self._set_deleted_at(book_id, deleted=False)

    async def hard_delete(self, book_id: UUID) -> Optional[BookDB]:
        """
        Permanently remove a book row (use with caution).

        Args:
            book_id: Book ID

        Returns:
            The book as it was before removal, or None if not found
        """
        async with self.transaction() as conn:
            book = await self._fetch_one(conn, book_id)
            if book is None:
                return None

            await conn.execute("DELETE FROM books WHERE id = $1", book_id)
            logger.info("book_row_deleted", book_id=str(book_id))
            return book

    async def count_by_author(self, author_id: UUID) -> AuthorBookStats:
        """
        Count live books for an author, by role.

        Args:
            author_id: Author ID

        Returns:
            Totals as primary author, as co-author, and combined
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT
                    COUNT(*) FILTER (WHERE primary_author_id = $1 OR co_author_id = $1) AS total_books,
                    COUNT(*) FILTER (WHERE primary_author_id = $1) AS primary_books,
                    COUNT(*) FILTER (WHERE co_author_id = $1) AS co_authored_books
                FROM books
                WHERE deleted_at IS NULL
                """,
                author_id
            )

            return AuthorBookStats(
                total_books=row["total_books"],
                primary_books=row["primary_books"],
                co_authored_books=row["co_authored_books"]
            )
