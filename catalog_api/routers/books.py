"""
Books router.

Provides REST API endpoints for:
- Book CRUD with soft delete and restore
- Search and pagination, optionally by author
- Co-author assignment and authorship transfer
"""

from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Response, status

from catalog_api.dependencies import get_book_service
from catalog_api.models import (
    BookDB,
    CreateBookRequest,
    ErrorResponse,
    Page,
    TransferAuthorshipRequest,
    UpdateBookRequest,
    UpdateCoAuthorRequest,
)
from catalog_api.services.book_service import BookService
from catalog_api.services.validation import DEFAULT_LIMIT

router = APIRouter(
    prefix="/books",
    tags=["Books"],
    responses={
        400: {"model": ErrorResponse, "description": "Validation Error"},
        404: {"model": ErrorResponse, "description": "Not Found"},
    }
)


@router.get(
    "",
    response_model=Page[BookDB],
    summary="List Books",
    description="""
    List books with their authors, newest first.

    **Query Parameters:**
    - q: case-insensitive match on title or description (optional)
    - author_id: books where this author is primary or co-author (optional)
    - limit: page size, 1-100 (default 20)
    - offset: records to skip (default 0)
    - include_deleted: include soft-deleted books (default false)
    """
)
async def list_books(
    q: Optional[str] = Query(None, description="Search title or description"),
    author_id: Optional[UUID] = Query(None, description="Primary author or co-author id"),
    limit: int = Query(DEFAULT_LIMIT, description="Page size (1-100)"),
    offset: int = Query(0, description="Records to skip"),
    include_deleted: bool = Query(False, description="Include soft-deleted books"),
    service: BookService = Depends(get_book_service)
) -> Page[BookDB]:
    return await service.list(
        search=q,
        author_id=author_id,
        limit=limit,
        offset=offset,
        include_deleted=include_deleted
    )


@router.post(
    "",
    response_model=BookDB,
    status_code=status.HTTP_201_CREATED,
    summary="Create Book",
    description="""
    Create a book.

    **Rules:**
    - title required (1-200 characters)
    - isbn, when given, must be a valid ISBN-10 or ISBN-13 and unused
    - published_date may not be in the future
    - primary author and co-author must be live and different
    """,
    responses={409: {"model": ErrorResponse, "description": "ISBN already in use"}}
)
async def create_book(
    request: CreateBookRequest,
    service: BookService = Depends(get_book_service)
) -> BookDB:
    return await service.create(request)


@router.get("/{book_id}", response_model=BookDB, summary="Get Book")
async def get_book(
    book_id: UUID,
    service: BookService = Depends(get_book_service)
) -> BookDB:
    return await service.get(book_id)


@router.put(
    "/{book_id}",
    response_model=BookDB,
    summary="Update Book",
    description="""
    Partially update a live book.

    Only fields present in the body are changed. `co_author_id: null` removes
    the co-author.
    """,
    responses={409: {"model": ErrorResponse, "description": "ISBN already in use"}}
)
async def update_book(
    book_id: UUID,
    request: UpdateBookRequest,
    service: BookService = Depends(get_book_service)
) -> BookDB:
    return await service.update(book_id, request)


@router.delete("/{book_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete Book")
async def delete_book(
    book_id: UUID,
    service: BookService = Depends(get_book_service)
) -> Response:
    await service.soft_delete(book_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{book_id}/restore", response_model=BookDB, summary="Restore Book")
async def restore_book(
    book_id: UUID,
    service: BookService = Depends(get_book_service)
) -> BookDB:
    return await service.restore(book_id)


@router.put("/{book_id}/co-author", response_model=BookDB, summary="Set Co-Author")
async def update_co_author(
    book_id: UUID,
    request: UpdateCoAuthorRequest,
    service: BookService = Depends(get_book_service)
) -> BookDB:
    """Set the co-author, or clear it with `null`."""
    return await service.update_co_author(book_id, request.co_author_id)


@router.put(
    "/{book_id}/transfer-authorship",
    response_model=BookDB,
    summary="Transfer Authorship",
    description="""
    Make another live author the primary author. The co-author is kept, so
    the new primary author may not be the current co-author.
    """
)
async def transfer_authorship(
    book_id: UUID,
    request: TransferAuthorshipRequest,
    service: BookService = Depends(get_book_service)
) -> BookDB:
    return await service.transfer_authorship(book_id, request.new_primary_author_id)
