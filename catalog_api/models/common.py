"""
Common models shared by the author and book modules.

Provides the SQLAlchemy declarative base used for the catalog schema and
the generic pagination envelope returned by every list operation.
"""

from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field
from sqlalchemy.orm import DeclarativeBase


# ============================================================================
# SQLAlchemy Base
# ============================================================================


class Base(DeclarativeBase):
    """
    Base class for all catalog tables.

    The tables are declared with SQLAlchemy for DDL generation only; reads
    and writes go through asyncpg in the repositories.
    """
    pass


# ============================================================================
# Pagination
# ============================================================================


T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """
    One page of a filtered listing.

    ``total`` is the number of records matching the filter, independent of
    ``limit`` and ``offset``.
    """
    data: List[T] = Field(default_factory=list, description="Records on this page")
    total: int = Field(..., ge=0, description="Records matching the filter")
    limit: int = Field(..., description="Page size requested")
    offset: int = Field(..., description="Records skipped")


# ============================================================================
# Error Responses
# ============================================================================


class ErrorResponse(BaseModel):
    """Error response body."""
    detail: str = Field(..., description="Human-readable error message")
    error_code: str = Field(..., description="validation_error, not_found or conflict")
    field: Optional[str] = Field(None, description="Request field the error refers to")
