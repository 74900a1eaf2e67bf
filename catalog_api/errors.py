"""
Error taxonomy for the catalog consistency layer.

Every rejected operation raises a single exception type, ``CatalogError``,
tagged with one of three kinds:

- VALIDATION: malformed or out-of-range input, detected before any write
- NOT_FOUND: a referenced id does not resolve to a live record
- CONFLICT: a uniqueness or referential constraint would be violated

The HTTP layer maps on ``kind`` through ``HTTP_STATUS_BY_KIND``.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Closed set of failure classifications."""

    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


HTTP_STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
}


class CatalogError(Exception):
    """Classified failure of a catalog operation."""

    def __init__(self, kind: ErrorKind, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.field = field

    @classmethod
    def validation(cls, message: str, field: Optional[str] = None) -> "CatalogError":
        return cls(ErrorKind.VALIDATION, message, field)

    @classmethod
    def not_found(cls, resource: str = "Resource", field: Optional[str] = None) -> "CatalogError":
        return cls(ErrorKind.NOT_FOUND, f"{resource} not found", field)

    @classmethod
    def conflict(cls, message: str, field: Optional[str] = None) -> "CatalogError":
        return cls(ErrorKind.CONFLICT, message, field)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]

    @property
    def error_code(self) -> str:
        return self.kind.value

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the error response body."""
        return {
            "detail": self.message,
            "error_code": self.error_code,
            "field": self.field,
        }

    def __repr__(self) -> str:
        return f"CatalogError(kind={self.kind.name}, message={self.message!r}, field={self.field!r})"
