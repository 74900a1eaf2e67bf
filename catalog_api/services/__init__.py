"""Business logic services.

This package contains the consistency services that validate author and
book mutations, orchestrate the repositories, and expose the operations
used by the API routers.
"""

from catalog_api.services.author_service import AuthorService
from catalog_api.services.book_service import BookService

__all__ = ["AuthorService", "BookService"]
