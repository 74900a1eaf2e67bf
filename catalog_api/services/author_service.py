"""
Author consistency service.

Decides whether an author mutation is admissible before handing it to the
repository:
- name, bio and email field rules
- email uniqueness among live authors
- live-record checks for update, soft delete and restore

Soft-deleting an author never touches the books that reference it.
"""

import structlog
from contextlib import contextmanager
from typing import Any, Iterator, Optional
from uuid import UUID

from catalog_api.errors import CatalogError
from catalog_api.models.author import (
    AuthorDB,
    AuthorFilter,
    AuthorStats,
    CreateAuthorRequest,
    UpdateAuthorRequest,
)
from catalog_api.models.common import Page
from catalog_api.repositories.author_repo import AuthorRepository
from catalog_api.services.validation import (
    DEFAULT_LIMIT,
    validate_author_name,
    validate_bio,
    validate_email_format,
    validate_pagination,
    validate_search_query,
)
from shared.metrics import CatalogMetrics, get_catalog_metrics

logger = structlog.get_logger(__name__)


class AuthorService:
    """Service for author validation and lifecycle operations."""

    def __init__(self, author_repo: AuthorRepository, metrics: Optional[CatalogMetrics] = None):
        """
        Initialize author service.

        Args:
            author_repo: Author repository
            metrics: Catalog metrics (process-wide instance by default)
        """
        self.author_repo = author_repo
        self.metrics = metrics or get_catalog_metrics()

    @contextmanager
    def _mutation(self, operation: str, **context: Any) -> Iterator[None]:
        with self.metrics.track("author", operation):
            try:
                yield
            except CatalogError as e:
                logger.warning(
                    f"author_{operation}_rejected",
                    error_code=e.error_code,
                    field=e.field,
                    reason=e.message,
                    **context
                )
                raise

    async def _get_live(self, author_id: UUID) -> AuthorDB:
        author = await self.author_repo.find_by_id(author_id)
        if author is None or author.is_deleted:
            raise CatalogError.not_found("Author")
        return author

    async def _ensure_email_available(self, email: str, exclude_id: Optional[UUID] = None) -> None:
        existing = await self.author_repo.find_by_email(email)
        if existing is not None and existing.id != exclude_id:
            raise CatalogError.conflict("An author with this email already exists", field="email")

    async def create(self, request: CreateAuthorRequest) -> AuthorDB:
        """
        Create an author.

        Args:
            request: Author fields

        Returns:
            Created author

        Raises:
            CatalogError: VALIDATION on a bad field, CONFLICT on a taken email
        """
        with self._mutation("create"):
            name = validate_author_name(request.name)
            bio = validate_bio(request.bio)
            email = validate_email_format(request.email)

            if email:
                await self._ensure_email_available(email)

            author = await self.author_repo.create(name=name, bio=bio, email=email)

        logger.info("author_created", author_id=str(author.id))
        return author

    async def get(self, author_id: UUID) -> AuthorDB:
        """
        Get a live author.

        Raises:
            CatalogError: NOT_FOUND if missing or soft-deleted
        """
        author = await self._get_live(author_id)
        logger.debug("author_retrieved", author_id=str(author_id))
        return author

    async def update(self, author_id: UUID, request: UpdateAuthorRequest) -> AuthorDB:
        """
        Apply a partial update to a live author.

        Only fields present in the request are validated and written. Email
        uniqueness ignores the author being updated. A request carrying no
        fields returns the current record without writing.

        Args:
            author_id: Author ID
            request: Fields to change

        Returns:
            Updated author

        Raises:
            CatalogError: NOT_FOUND, VALIDATION or CONFLICT
        """
        with self._mutation("update", author_id=str(author_id)):
            current = await self._get_live(author_id)
            supplied = request.supplied()
            fields = {}

            if "name" in supplied:
                fields["name"] = validate_author_name(supplied["name"])
            if "bio" in supplied:
                fields["bio"] = validate_bio(supplied["bio"])
            if "email" in supplied:
                fields["email"] = validate_email_format(supplied["email"])
                if fields["email"]:
                    await self._ensure_email_available(fields["email"], exclude_id=author_id)

            if not fields:
                logger.debug("author_update_empty", author_id=str(author_id))
                return current

            author = await self.author_repo.update(author_id, fields)
            if author is None:
                raise CatalogError.not_found("Author")

        logger.info("author_updated", author_id=str(author_id), fields=sorted(fields))
        return author

    async def soft_delete(self, author_id: UUID) -> AuthorDB:
        """
        Soft-delete a live author. Books referencing it are left as they are.

        Raises:
            CatalogError: NOT_FOUND if missing or already deleted
        """
        with self._mutation("soft_delete", author_id=str(author_id)):
            await self._get_live(author_id)
            author = await self.author_repo.soft_delete(author_id)
            if author is None:
                raise CatalogError.not_found("Author")

        logger.info("author_soft_deleted", author_id=str(author_id))
        return author

    async def restore(self, author_id: UUID) -> AuthorDB:
        """
        Clear an author's deletion timestamp.

        Raises:
            CatalogError: NOT_FOUND if no row exists, CONFLICT if another
                live author now uses the same email
        """
        with self._mutation("restore", author_id=str(author_id)):
            existing = await self.author_repo.find_by_id(author_id)
            if existing is None:
                raise CatalogError.not_found("Author")

            if existing.is_deleted and existing.email:
                holder = await self.author_repo.find_by_email(existing.email)
                if holder is not None and holder.id != author_id:
                    raise CatalogError.conflict(
                        "Another active author already uses this author's email",
                        field="email"
                    )

            author = await self.author_repo.restore(author_id)
            if author is None:
                raise CatalogError.not_found("Author")

        logger.info("author_restored", author_id=str(author_id))
        return author

    async def hard_delete(self, author_id: UUID) -> AuthorDB:
        """
        Permanently remove an author (privileged).

        Raises:
            CatalogError: NOT_FOUND if absent, CONFLICT if books reference it
        """
        with self._mutation("hard_delete", author_id=str(author_id)):
            author = await self.author_repo.hard_delete(author_id)
            if author is None:
                raise CatalogError.not_found("Author")

        logger.warning("author_hard_deleted", author_id=str(author_id))
        return author

    async def list(
        self,
        search: Optional[str] = None,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
        include_deleted: bool = False
    ) -> Page[AuthorDB]:
        """
        List authors, newest first.

        Args:
            search: Case-insensitive substring of name or bio
            limit: Page size, 1 to 100
            offset: Records to skip, non-negative
            include_deleted: Include soft-deleted authors

        Returns:
            Page with the total count for the same filter
        """
        validate_pagination(limit, offset)
        filter = AuthorFilter(
            search=search.strip() if search and search.strip() else None,
            include_deleted=include_deleted
        )

        authors = await self.author_repo.find_many(filter, limit=limit, offset=offset)
        total = await self.author_repo.count(filter)

        logger.debug("authors_listed", count=len(authors), total=total, limit=limit, offset=offset)
        return Page[AuthorDB](data=authors, total=total, limit=limit, offset=offset)

    async def search(self, query: str, limit: int = DEFAULT_LIMIT, offset: int = 0) -> Page[AuthorDB]:
        """Search live authors by name or bio (query of at least 2 characters)."""
        return await self.list(search=validate_search_query(query), limit=limit, offset=offset)

    async def exists(self, author_id: UUID) -> bool:
        """Check whether an author row exists, deleted or not."""
        return await self.author_repo.exists(author_id)

    async def stats(self) -> AuthorStats:
        """Count all, live and soft-deleted authors."""
        total = await self.author_repo.count(AuthorFilter(include_deleted=True))
        active = await self.author_repo.count(AuthorFilter())

        return AuthorStats(
            total_authors=total,
            active_authors=active,
            deleted_authors=total - active
        )
