"""
Author repository for database operations.

Provides async CRUD operations for authors using asyncpg with PostgreSQL,
with soft delete support. Listing and counting share one filter builder so
page contents and totals always use the same predicate.

Storage constraint violations are translated into ``CatalogError``:
a duplicate live email becomes CONFLICT, and hard-deleting an author that
books still reference becomes CONFLICT.
"""

import asyncpg
import structlog
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from catalog_api.errors import CatalogError
from catalog_api.models.author import AuthorDB, AuthorFilter

logger = structlog.get_logger(__name__)

AUTHOR_COLUMNS = "id, name, bio, email, created_at, updated_at, deleted_at"

# Columns a caller may write through update()
UPDATABLE_FIELDS = ("name", "bio", "email")


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def row_to_author(row: asyncpg.Record) -> AuthorDB:
    return AuthorDB(
        id=row["id"],
        name=row["name"],
        bio=row["bio"],
        email=row["email"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        deleted_at=row["deleted_at"]
    )


class AuthorRepository:
    """Repository for author database operations."""

    def __init__(self, pool: asyncpg.Pool):
        """
        Initialize author repository.

        Args:
            pool: asyncpg connection pool
        """
        self.pool = pool

    @staticmethod
    def _build_where(filter: AuthorFilter) -> Tuple[str, List[Any]]:
        where_clauses = []
        params: List[Any] = []

        if filter.search:
            params.append(f"%{escape_like(filter.search)}%")
            where_clauses.append(
                f"(name ILIKE ${len(params)} OR bio ILIKE ${len(params)})"
            )

        if not filter.include_deleted:
            where_clauses.append("deleted_at IS NULL")

        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        return where_sql, params

    async def create(
        self,
        name: str,
        bio: Optional[str] = None,
        email: Optional[str] = None
    ) -> AuthorDB:
        """
        Create a new author.

        Args:
            name: Author name
            bio: Biography (optional)
            email: Email address (optional)

        Returns:
            Created author

        Raises:
            CatalogError: CONFLICT if a live author already uses the email
        """
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO authors (name, bio, email, created_at, updated_at)
                    VALUES ($1, $2, $3, NOW(), NOW())
                    RETURNING {AUTHOR_COLUMNS}
                    """,
                    name,
                    bio,
                    email
                )

                logger.info("author_row_inserted", author_id=str(row["id"]))
                return row_to_author(row)

        except asyncpg.UniqueViolationError:
            logger.warning("author_email_already_exists", email=email)
            raise CatalogError.conflict("An author with this email already exists", field="email")
        except Exception as e:
            logger.error("author_create_failed", error=str(e))
            raise

    async def find_by_id(self, author_id: UUID) -> Optional[AuthorDB]:
        """
        Get author by ID, soft-deleted or not.

        Args:
            author_id: Author ID

        Returns:
            Author or None if not found
        """
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT {AUTHOR_COLUMNS} FROM authors WHERE id = $1",
                    author_id
                )

                if not row:
                    logger.debug("author_not_found", author_id=str(author_id))
                    return None

                return row_to_author(row)

        except Exception as e:
            logger.error("author_get_by_id_failed", error=str(e), author_id=str(author_id))
            raise

    async def find_by_email(self, email: str) -> Optional[AuthorDB]:
        """
        Get the live author using an email address.

        Args:
            email: Email address

        Returns:
            Author or None if no live author uses it
        """
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    SELECT {AUTHOR_COLUMNS}
                    FROM authors
                    WHERE email = $1 AND deleted_at IS NULL
                    """,
                    email
                )
                return row_to_author(row) if row else None

        except Exception as e:
            logger.error("author_get_by_email_failed", error=str(e))
            raise

    async def exists(self, author_id: UUID) -> bool:
        """
        Check whether an author row exists, ignoring soft delete.

        Args:
            author_id: Author ID

        Returns:
            True if a row exists
        """
        async with self.pool.acquire() as conn:
            found = await conn.fetchval(
                "SELECT EXISTS(SELECT 1 FROM authors WHERE id = $1)",
                author_id
            )
            return bool(found)

    async def find_many(
        self,
        filter: AuthorFilter,
        limit: int = 20,
        offset: int = 0
    ) -> List[AuthorDB]:
        """
        List authors matching a filter, newest first.

        Args:
            filter: Filter parameters
            limit: Maximum number of authors to return
            offset: Number of authors to skip

        Returns:
            List of authors
        """
        where_sql, params = self._build_where(filter)
        params.extend([limit, offset])

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {AUTHOR_COLUMNS}
                    FROM authors
                    {where_sql}
                    ORDER BY created_at DESC, id
                    LIMIT ${len(params) - 1} OFFSET ${len(params)}
                    """,
                    *params
                )
                return [row_to_author(row) for row in rows]

        except Exception as e:
            logger.error("author_list_failed", error=str(e), filter=filter.model_dump())
            raise

    async def count(self, filter: AuthorFilter) -> int:
        """
        Count authors matching a filter.

        Args:
            filter: Filter parameters

        Returns:
            Number of matching authors
        """
        where_sql, params = self._build_where(filter)

        try:
            async with self.pool.acquire() as conn:
                return await conn.fetchval(
                    f"SELECT COUNT(*) FROM authors {where_sql}",
                    *params
                )

        except Exception as e:
            logger.error("author_count_failed", error=str(e), filter=filter.model_dump())
            raise

    async def update(self, author_id: UUID, fields: Dict[str, Any]) -> Optional[AuthorDB]:
        """
        Update the given columns of an author.

        Args:
            author_id: Author ID
            fields: Column values to write (subset of name, bio, email)

        Returns:
            Updated author or None if not found

        Raises:
            CatalogError: CONFLICT if the new email is used by a live author
        """
        updates = []
        params: List[Any] = []

        for column in UPDATABLE_FIELDS:
            if column in fields:
                params.append(fields[column])
                updates.append(f"{column} = ${len(params)}")

        if not updates:
            return await self.find_by_id(author_id)

        updates.append("updated_at = NOW()")
        params.append(author_id)

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    UPDATE authors
                    SET {', '.join(updates)}
                    WHERE id = ${len(params)}
                    RETURNING {AUTHOR_COLUMNS}
                    """,
                    *params
                )

                if not row:
                    logger.debug("author_not_found", author_id=str(author_id))
                    return None

                return row_to_author(row)

        except asyncpg.UniqueViolationError:
            logger.warning("author_email_already_exists", author_id=str(author_id))
            raise CatalogError.conflict("An author with this email already exists", field="email")
        except Exception as e:
            logger.error("author_update_failed", error=str(e), author_id=str(author_id))
            raise

    async def soft_delete(self, author_id: UUID) -> Optional[AuthorDB]:
        """
        Mark an author deleted.

        Args:
            author_id: Author ID

        Returns:
            Updated author or None if not found
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE authors
                SET deleted_at = NOW(), updated_at = NOW()
                WHERE id = $1
                RETURNING {AUTHOR_COLUMNS}
                """,
                author_id
            )
            return row_to_author(row) if row else None

    async def restore(self, author_id: UUID) -> Optional[AuthorDB]:
        """
        Clear an author's deletion timestamp.

        Args:
            author_id: Author ID

        Returns:
            Restored author or None if not found

        Raises:
            CatalogError: CONFLICT if a live author took the email meanwhile
        """
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    UPDATE authors
                    SET deleted_at = NULL, updated_at = NOW()
                    WHERE id = $1
                    RETURNING {AUTHOR_COLUMNS}
                    """,
                    author_id
                )
                return row_to_author(row) if row else None

        except asyncpg.UniqueViolationError:
            logger.warning("author_restore_email_conflict", author_id=str(author_id))
            raise CatalogError.conflict(
                "Another active author already uses this author's email",
                field="email"
            )

    async def hard_delete(self, author_id: UUID) -> Optional[AuthorDB]:
        """
        Permanently remove an author row (use with caution).

        Args:
            author_id: Author ID

        Returns:
            Removed author or None if not found

        Raises:
            CatalogError: CONFLICT if books still reference the author
        """
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"DELETE FROM authors WHERE id = $1 RETURNING {AUTHOR_COLUMNS}",
                    author_id
                )

                if row:
                    logger.info("author_row_deleted", author_id=str(author_id))
                return row_to_author(row) if row else None

        except asyncpg.ForeignKeyViolationError:
            logger.warning("author_still_referenced", author_id=str(author_id))
            raise CatalogError.conflict("Author is still referenced by one or more books")
