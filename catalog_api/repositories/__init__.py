"""Data access repositories (asyncpg)."""

from catalog_api.repositories.author_repo import AuthorRepository
from catalog_api.repositories.book_repo import BookRepository

__all__ = ["AuthorRepository", "BookRepository"]
