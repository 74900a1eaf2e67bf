"""
Book models.

Provides both the SQLAlchemy table declaration and the Pydantic schemas for:
- Book records with their resolved author references (BookDB)
- Create and partial-update requests
- Co-author and authorship-transfer requests
- Listing filters and per-author statistics
"""

from datetime import date, datetime
from typing import Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from catalog_api.models.author import AuthorDB
from catalog_api.models.common import Base


PublishedDateInput = Union[str, datetime, date]


# ============================================================================
# SQLAlchemy Models
# ============================================================================


class Book(Base):
    """
    Book table.

    Author references restrict hard deletion of a referenced author. The
    check constraint backs the primary/co-author distinctness rule.
    """
    __tablename__ = "books"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
        server_default=text("gen_random_uuid()"),
        nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    isbn: Mapped[Optional[str]] = mapped_column(String(13), nullable=True, unique=True)
    published_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )
    primary_author_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("authors.id", ondelete="RESTRICT"),
        nullable=False
    )
    co_author_id: Mapped[Optional[UUID]] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("authors.id", ondelete="RESTRICT"),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP")
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "co_author_id IS NULL OR co_author_id <> primary_author_id",
            name="ck_books_distinct_authors"
        ),
        Index("idx_books_primary_author_id", "primary_author_id"),
        Index("idx_books_co_author_id", "co_author_id"),
        Index("idx_books_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Book(id={self.id}, title='{self.title}')>"


# ============================================================================
# Pydantic Record Models
# ============================================================================


class BookDB(BaseModel):
    """Book record with embedded author references."""
    id: UUID
    title: str
    description: Optional[str] = None
    isbn: Optional[str] = None
    published_date: Optional[datetime] = None
    primary_author_id: UUID
    co_author_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None
    primary_author: Optional[AuthorDB] = None
    co_author: Optional[AuthorDB] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


# ============================================================================
# Pydantic Request Models
# ============================================================================


class CreateBookRequest(BaseModel):
    """Create book request schema."""
    title: str = Field(..., description="Title (1-200 characters)")
    description: Optional[str] = Field(None, description="Description (up to 5000 characters)")
    isbn: Optional[str] = Field(
        None,
        description="ISBN-10 or ISBN-13; hyphens and spaces are dropped before storage"
    )
    published_date: Optional[PublishedDateInput] = Field(
        None,
        description="Publication date (ISO 8601), not in the future"
    )
    primary_author_id: Optional[UUID] = Field(None, description="Primary author id")
    co_author_id: Optional[UUID] = Field(None, description="Co-author id")

    model_config = {
        "json_schema_extra": {
            "example": {
                "title": "The Dispossessed",
                "isbn": "978-0-06-051275-3",
                "published_date": "1974-05-01",
                "primary_author_id": "3fa85f64-5717-4562-b3fc-2c963f66afa6"
            }
        }
    }


class UpdateBookRequest(BaseModel):
    """
    Partial book update.

    ``co_author_id: null`` clears the co-author; ``description``, ``isbn``
    and ``published_date`` may be cleared the same way.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    isbn: Optional[str] = None
    published_date: Optional[PublishedDateInput] = None
    primary_author_id: Optional[UUID] = None
    co_author_id: Optional[UUID] = None

    def supplied(self) -> dict:
        """Fields explicitly present in the request, including nulls."""
        return self.model_dump(include=self.model_fields_set)


class UpdateCoAuthorRequest(BaseModel):
    """Set or clear a book's co-author."""
    co_author_id: Optional[UUID] = Field(..., description="Co-author id, or null to clear")


class TransferAuthorshipRequest(BaseModel):
    """Reassign a book's primary author."""
    new_primary_author_id: UUID = Field(..., description="Id of the new primary author")


# ============================================================================
# Filters and statistics
# ============================================================================


class BookFilter(BaseModel):
    """Predicate shared by book listing and counting."""
    search: Optional[str] = Field(None, description="Case-insensitive match on title or description")
    author_id: Optional[UUID] = Field(None, description="Primary author or co-author id")
    include_deleted: bool = Field(False, description="Include soft-deleted books")


class AuthorBookStats(BaseModel):
    """Live book counts for one author, by role."""
    total_books: int
    primary_books: int
    co_authored_books: int
