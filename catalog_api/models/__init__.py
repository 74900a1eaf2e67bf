"""Catalog data models (SQLAlchemy tables and Pydantic schemas)."""

from catalog_api.models.common import Base, ErrorResponse, Page
from catalog_api.models.author import (
    Author,
    AuthorDB,
    AuthorFilter,
    AuthorStats,
    CreateAuthorRequest,
    UpdateAuthorRequest,
)
from catalog_api.models.book import (
    AuthorBookStats,
    Book,
    BookDB,
    BookFilter,
    CreateBookRequest,
    TransferAuthorshipRequest,
    UpdateBookRequest,
    UpdateCoAuthorRequest,
)

__all__ = [
    "Base",
    "Page",
    "ErrorResponse",
    "Author",
    "AuthorDB",
    "AuthorFilter",
    "AuthorStats",
    "CreateAuthorRequest",
    "UpdateAuthorRequest",
    "AuthorBookStats",
    "Book",
    "BookDB",
    "BookFilter",
    "CreateBookRequest",
    "TransferAuthorshipRequest",
    "UpdateBookRequest",
    "UpdateCoAuthorRequest",
]
