"""
Shared fixtures for the catalog test suite.

Provides in-memory repositories that mirror the asyncpg repositories'
interface, including the storage constraints they translate (live-email
uniqueness, ISBN uniqueness, distinct authors, restricting references).
Services built on them run without a database.
"""

import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

import pytest
from prometheus_client import CollectorRegistry

from catalog_api.errors import CatalogError
from catalog_api.models.author import AuthorDB, AuthorFilter
from catalog_api.models.book import AuthorBookStats, BookDB, BookFilter
from catalog_api.services.author_service import AuthorService
from catalog_api.services.book_service import BookService
from shared.metrics import CatalogMetrics

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class _Clock:
    """Strictly increasing timestamps so newest-first ordering is stable."""

    def __init__(self):
        self._ticks = itertools.count(1)

    def now(self) -> datetime:
        return BASE_TIME + timedelta(seconds=next(self._ticks))


def _contains(haystack: Optional[str], needle: str) -> bool:
    return haystack is not None and needle.lower() in haystack.lower()


# ============================================================================
# IN-MEMORY REPOSITORIES (Test Doubles)
# ============================================================================


class InMemoryAuthorRepository:
    """Author repository backed by a dict."""

    def __init__(self, clock: Optional[_Clock] = None):
        self.rows: Dict[UUID, AuthorDB] = {}
        self.clock = clock or _Clock()
        self.book_repo: Optional["InMemoryBookRepository"] = None
        self.writes = 0

    def _email_taken(self, email: Optional[str], exclude_id: Optional[UUID] = None) -> bool:
        return email is not None and any(
            a.email == email and not a.is_deleted and a.id != exclude_id
            for a in self.rows.values()
        )

    def _matches(self, author: AuthorDB, filter: AuthorFilter) -> bool:
        if not filter.include_deleted and author.is_deleted:
            return False
        if filter.search:
            return _contains(author.name, filter.search) or _contains(author.bio, filter.search)
        return True

    async def create(self, name: str, bio: Optional[str] = None, email: Optional[str] = None) -> AuthorDB:
        if self._email_taken(email):
            raise CatalogError.conflict("An author with this email already exists", field="email")

        now = self.clock.now()
        author = AuthorDB(
            id=uuid4(), name=name, bio=bio, email=email, created_at=now, updated_at=now
        )
        self.rows[author.id] = author
        self.writes += 1
        return author

    async def find_by_id(self, author_id: UUID) -> Optional[AuthorDB]:
        return self.rows.get(author_id)

    async def find_by_email(self, email: str) -> Optional[AuthorDB]:
        for author in self.rows.values():
            if author.email == email and not author.is_deleted:
                return author
        return None

    async def exists(self, author_id: UUID) -> bool:
        return author_id in self.rows

    async def find_many(self, filter: AuthorFilter, limit: int = 20, offset: int = 0) -> List[AuthorDB]:
        matching = [a for a in self.rows.values() if self._matches(a, filter)]
        matching.sort(key=lambda a: a.created_at, reverse=True)
        return matching[offset:offset + limit]

    async def count(self, filter: AuthorFilter) -> int:
        return sum(1 for a in self.rows.values() if self._matches(a, filter))

    async def update(self, author_id: UUID, fields: Dict[str, Any]) -> Optional[AuthorDB]:
        if author_id not in self.rows:
            return None
        if "email" in fields and self._email_taken(fields["email"], exclude_id=author_id):
            raise CatalogError.conflict("An author with this email already exists", field="email")

        updated = self.rows[author_id].model_copy(
            update={**fields, "updated_at": self.clock.now()}
        )
        self.rows[author_id] = updated
        self.writes += 1
        return updated

    async def soft_delete(self, author_id: UUID) -> Optional[AuthorDB]:
        if author_id not in self.rows:
            return None
        now = self.clock.now()
        self.rows[author_id] = self.rows[author_id].model_copy(
            update={"deleted_at": now, "updated_at": now}
        )
        self.writes += 1
        return self.rows[author_id]

    async def restore(self, author_id: UUID) -> Optional[AuthorDB]:
        if author_id not in self.rows:
            return None
        if self._email_taken(self.rows[author_id].email, exclude_id=author_id):
            raise CatalogError.conflict(
                "Another active author already uses this author's email", field="email"
            )
        self.rows[author_id] = self.rows[author_id].model_copy(
            update={"deleted_at": None, "updated_at": self.clock.now()}
        )
        self.writes += 1
        return self.rows[author_id]

    async def hard_delete(self, author_id: UUID) -> Optional[AuthorDB]:
        if author_id not in self.rows:
            return None
        if self.book_repo is not None and self.book_repo.references(author_id):
            raise CatalogError.conflict("Author is still referenced by one or more books")
        self.writes += 1
        return self.rows.pop(author_id)


class InMemoryBookRepository:
    """Book repository backed by a dict, embedding authors on read."""

    def __init__(self, author_repo: InMemoryAuthorRepository):
        self.rows: Dict[UUID, BookDB] = {}
        self.author_repo = author_repo
        self.clock = author_repo.clock
        self.writes = 0

    def references(self, author_id: UUID) -> bool:
        return any(
            author_id in (b.primary_author_id, b.co_author_id) for b in self.rows.values()
        )

    def _embed(self, book: BookDB) -> BookDB:
        co = self.author_repo.rows.get(book.co_author_id) if book.co_author_id else None
        return book.model_copy(update={
            "primary_author": self.author_repo.rows.get(book.primary_author_id),
            "co_author": co,
        })

    def _check_constraints(self, book: BookDB) -> None:
        if book.isbn is not None and any(
            b.isbn == book.isbn and b.id != book.id for b in self.rows.values()
        ):
            raise CatalogError.conflict("A book with this ISBN already exists", field="isbn")
        if book.co_author_id is not None and book.co_author_id == book.primary_author_id:
            raise CatalogError.validation(
                "Primary author and co-author cannot be the same person", field="co_author_id"
            )
        for author_id in (book.primary_author_id, book.co_author_id):
            if author_id is not None and author_id not in self.author_repo.rows:
                raise CatalogError.not_found("Author")

    def _matches(self, book: BookDB, filter: BookFilter) -> bool:
        if not filter.include_deleted and book.is_deleted:
            return False
        if filter.author_id is not None and filter.author_id not in (
            book.primary_author_id, book.co_author_id
        ):
            return False
        if filter.search:
            return _contains(book.title, filter.search) or _contains(book.description, filter.search)
        return True

    async def create(self, fields: Dict[str, Any]) -> BookDB:
        now = self.clock.now()
        book = BookDB(id=uuid4(), created_at=now, updated_at=now, **fields)
        self._check_constraints(book)
        self.rows[book.id] = book
        self.writes += 1
        return self._embed(book)

    async def find_by_id(self, book_id: UUID) -> Optional[BookDB]:
        book = self.rows.get(book_id)
        return self._embed(book) if book else None

    async def find_by_isbn(self, isbn: str) -> Optional[BookDB]:
        for book in self.rows.values():
            if book.isbn == isbn:
                return self._embed(book)
        return None

    async def find_many(self, filter: BookFilter, limit: int = 20, offset: int = 0) -> List[BookDB]:
        matching = [b for b in self.rows.values() if self._matches(b, filter)]
        matching.sort(key=lambda b: b.created_at, reverse=True)
        return [self._embed(b) for b in matching[offset:offset + limit]]

    async def count(self, filter: BookFilter) -> int:
        return sum(1 for b in self.rows.values() if self._matches(b, filter))

    async def update(self, book_id: UUID, fields: Dict[str, Any]) -> Optional[BookDB]:
        if book_id not in self.rows:
            return None
        updated = self.rows[book_id].model_copy(
            update={**fields, "updated_at": self.clock.now()}
        )
        self._check_constraints(updated)
        self.rows[book_id] = updated
        self.writes += 1
        return self._embed(updated)

    async def update_co_author(self, book_id: UUID, co_author_id: Optional[UUID]) -> Optional[BookDB]:
        return await self.update(book_id, {"co_author_id": co_author_id})

    async def transfer_authorship(self, book_id: UUID, new_primary_author_id: UUID) -> Optional[BookDB]:
        return await self.update(book_id, {"primary_author_id": new_primary_author_id})

    async def soft_delete(self, book_id: UUID) -> Optional[BookDB]:
        if book_id not in self.rows:
            return None
        now = self.clock.now()
        return await self.update(book_id, {"deleted_at": now})

    async def restore(self, book_id: UUID) -> Optional[BookDB]:
        return await self.update(book_id, {"deleted_at": None})

    async def hard_delete(self, book_id: UUID) -> Optional[BookDB]:
        book = self.rows.pop(book_id, None)
        if book is not None:
            self.writes += 1
        return self._embed(book) if book else None

    async def count_by_author(self, author_id: UUID) -> AuthorBookStats:
        live = [b for b in self.rows.values() if not b.is_deleted]
        primary = sum(1 for b in live if b.primary_author_id == author_id)
        co = sum(1 for b in live if b.co_author_id == author_id)
        return AuthorBookStats(total_books=primary + co, primary_books=primary, co_authored_books=co)


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def catalog_metrics():
    """Catalog metrics on a private registry."""
    return CatalogMetrics(registry=CollectorRegistry())


@pytest.fixture
def author_repo():
    """Empty in-memory author repository."""
    return InMemoryAuthorRepository()


@pytest.fixture
def book_repo(author_repo):
    """Empty in-memory book repository sharing the author store."""
    repo = InMemoryBookRepository(author_repo)
    author_repo.book_repo = repo
    return repo


@pytest.fixture
def author_service(author_repo, catalog_metrics):
    """Author service over the in-memory repository."""
    return AuthorService(author_repo, metrics=catalog_metrics)


@pytest.fixture
def book_service(book_repo, author_repo, catalog_metrics):
    """Book service over the in-memory repositories."""
    return BookService(book_repo, author_repo, metrics=catalog_metrics)
