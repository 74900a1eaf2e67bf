"""
Authors router.

Provides REST API endpoints for:
- Author CRUD with soft delete and restore
- Search and pagination
- Author statistics and per-author book listings

Handlers are thin: validation, lookups and error classification live in the
services, and ``CatalogError`` is turned into a response by the application
exception handler.
"""

from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Response, status

from catalog_api.dependencies import get_author_service, get_book_service
from catalog_api.models import (
    AuthorBookStats,
    AuthorDB,
    AuthorStats,
    BookDB,
    CreateAuthorRequest,
    ErrorResponse,
    Page,
    UpdateAuthorRequest,
)
from catalog_api.services.author_service import AuthorService
from catalog_api.services.book_service import BookService
from catalog_api.services.validation import DEFAULT_LIMIT

router = APIRouter(
    prefix="/authors",
    tags=["Authors"],
    responses={
        400: {"model": ErrorResponse, "description": "Validation Error"},
        404: {"model": ErrorResponse, "description": "Not Found"},
    }
)


@router.get(
    "",
    response_model=Page[AuthorDB],
    summary="List Authors",
    description="""
    List authors, newest first.

    **Query Parameters:**
    - q: case-insensitive match on name or bio (optional)
    - limit: page size, 1-100 (default 20)
    - offset: records to skip (default 0)
    - include_deleted: include soft-deleted authors (default false)
    """
)
async def list_authors(
    q: Optional[str] = Query(None, description="Search name or bio"),
    limit: int = Query(DEFAULT_LIMIT, description="Page size (1-100)"),
    offset: int = Query(0, description="Records to skip"),
    include_deleted: bool = Query(False, description="Include soft-deleted authors"),
    service: AuthorService = Depends(get_author_service)
) -> Page[AuthorDB]:
    return await service.list(search=q, limit=limit, offset=offset, include_deleted=include_deleted)


@router.post(
    "",
    response_model=AuthorDB,
    status_code=status.HTTP_201_CREATED,
    summary="Create Author",
    responses={409: {"model": ErrorResponse, "description": "Email already in use"}}
)
async def create_author(
    request: CreateAuthorRequest,
    service: AuthorService = Depends(get_author_service)
) -> AuthorDB:
    """Create an author. Email, when given, must not belong to another live author."""
    return await service.create(request)


@router.get("/stats", response_model=AuthorStats, summary="Author Statistics")
async def author_stats(service: AuthorService = Depends(get_author_service)) -> AuthorStats:
    return await service.stats()


@router.get("/{author_id}", response_model=AuthorDB, summary="Get Author")
async def get_author(
    author_id: UUID,
    service: AuthorService = Depends(get_author_service)
) -> AuthorDB:
    return await service.get(author_id)


@router.put(
    "/{author_id}",
    response_model=AuthorDB,
    summary="Update Author",
    description="""
    Partially update a live author.

    Only fields present in the body are changed. Send `null` for `bio` or
    `email` to clear them.
    """,
    responses={409: {"model": ErrorResponse, "description": "Email already in use"}}
)
async def update_author(
    author_id: UUID,
    request: UpdateAuthorRequest,
    service: AuthorService = Depends(get_author_service)
) -> AuthorDB:
    return await service.update(author_id, request)


@router.delete(
    "/{author_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Author",
    description="Soft-delete an author. Books referencing the author are not changed."
)
async def delete_author(
    author_id: UUID,
    service: AuthorService = Depends(get_author_service)
) -> Response:
    await service.soft_delete(author_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{author_id}/restore",
    response_model=AuthorDB,
    summary="Restore Author",
    responses={409: {"model": ErrorResponse, "description": "Email taken by another author"}}
)
async def restore_author(
    author_id: UUID,
    service: AuthorService = Depends(get_author_service)
) -> AuthorDB:
    return await service.restore(author_id)


@router.get("/{author_id}/books", response_model=Page[BookDB], summary="List Author's Books")
async def list_author_books(
    author_id: UUID,
    limit: int = Query(DEFAULT_LIMIT, description="Page size (1-100)"),
    offset: int = Query(0, description="Records to skip"),
    service: BookService = Depends(get_book_service)
) -> Page[BookDB]:
    """List live books where the author is primary or co-author."""
    return await service.list_by_author(author_id, limit=limit, offset=offset)


@router.get("/{author_id}/book-stats", response_model=AuthorBookStats, summary="Author Book Statistics")
async def author_book_stats(
    author_id: UUID,
    service: BookService = Depends(get_book_service)
) -> AuthorBookStats:
    return await service.author_stats(author_id)
