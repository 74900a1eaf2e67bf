"""
Author models.

Provides both the SQLAlchemy table declaration and the Pydantic schemas for:
- Author records as stored (AuthorDB)
- Create and partial-update requests
- Listing filters and statistics

Update requests distinguish an absent field from an explicit ``null``
through ``model_fields_set``.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import DateTime, Index, String, Text, text
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from catalog_api.models.common import Base


# ============================================================================
# SQLAlchemy Models
# ============================================================================


class Author(Base):
    """
    Author table.

    Email is unique among live rows only, so a soft-deleted author does not
    block a new author from using the same address.
    """
    __tablename__ = "authors"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
        server_default=text("gen_random_uuid()"),
        nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
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
        Index(
            "uq_authors_email_live",
            "email",
            unique=True,
            postgresql_where=text("deleted_at IS NULL")
        ),
        Index("idx_authors_created_at", "created_at"),
        Index("idx_authors_deleted_at", "deleted_at"),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Author(id={self.id}, name='{self.name}')>"


# ============================================================================
# Pydantic Record Models
# ============================================================================


class AuthorDB(BaseModel):
    """Author record as returned by the data-access layer."""
    id: UUID
    name: str
    bio: Optional[str] = None
    email: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


# ============================================================================
# Pydantic Request Models
# ============================================================================


class CreateAuthorRequest(BaseModel):
    """Create author request schema."""
    name: str = Field(..., description="Author name (2-100 characters)")
    bio: Optional[str] = Field(None, description="Biography (up to 2000 characters)")
    email: Optional[str] = Field(None, description="Contact email, unique among live authors")

    model_config = {
        "json_schema_extra": {
            "example": {
                "name": "Ursula K. Le Guin",
                "bio": "American author of speculative fiction.",
                "email": "ursula@example.com"
            }
        }
    }


class UpdateAuthorRequest(BaseModel):
    """
    Partial author update.

    Only fields present in the payload are validated and written. Sending
    ``"bio": null`` or ``"email": null`` clears the field.
    """
    name: Optional[str] = Field(None, description="Author name (2-100 characters)")
    bio: Optional[str] = Field(None, description="Biography")
    email: Optional[str] = Field(None, description="Contact email")

    def supplied(self) -> dict:
        """Fields explicitly present in the request, including nulls."""
        return self.model_dump(include=self.model_fields_set)


# ============================================================================
# Filters and statistics
# ============================================================================


class AuthorFilter(BaseModel):
    """Predicate shared by author listing and counting."""
    search: Optional[str] = Field(None, description="Case-insensitive match on name or bio")
    include_deleted: bool = Field(False, description="Include soft-deleted authors")


class AuthorStats(BaseModel):
    """Author population counts."""
    total_authors: int
    active_authors: int
    deleted_authors: int
