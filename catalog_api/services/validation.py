"""
Pure field validation shared by the author and book services.

Nothing here performs I/O. Each ``validate_*`` helper raises a VALIDATION
``CatalogError`` naming the offending field; the ``is_valid_*`` predicates
return booleans.
"""

import re
from datetime import date, datetime, time, timezone
from typing import Optional, Tuple, Union

from catalog_api.errors import CatalogError

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
BIO_MAX_LENGTH = 2000
TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 5000
EMAIL_MAX_LENGTH = 255
SEARCH_MIN_LENGTH = 2

DEFAULT_LIMIT = 20
MAX_LIMIT = 100

# Exactly one "@", non-empty local part, and a dot inside the domain
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
ISBN_SEPARATORS = re.compile(r"[-\s]")
ISBN13_PREFIXES = ("978", "979")


def _is_ascii_digits(value: str) -> bool:
    return value.isascii() and value.isdigit()


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email))


def normalize_isbn(isbn: str) -> str:
    """Drop hyphens and whitespace: '978-0-306-40615-7' becomes '9780306406157'."""
    return ISBN_SEPARATORS.sub("", isbn)


def is_valid_isbn(isbn: str) -> bool:
    """
    Check an ISBN-10 or ISBN-13.

    Hyphens and whitespace are ignored. ISBN-13 values must carry a
    978/979 prefix and a correct check digit. ISBN-10 values only need to
    be ten digits: their check digit is not verified, and an "X" check
    character is rejected.
    """
    cleaned = normalize_isbn(isbn)

    if len(cleaned) not in (10, 13) or not _is_ascii_digits(cleaned):
        return False

    if len(cleaned) == 10:
        return True

    if not cleaned.startswith(ISBN13_PREFIXES):
        return False

    total = sum(int(digit) * (1 if i % 2 == 0 else 3) for i, digit in enumerate(cleaned[:12]))
    check_digit = (10 - total % 10) % 10
    return check_digit == int(cleaned[12])


def parse_published_date(value: Union[str, date, datetime]) -> datetime:
    """
    Parse a publication date into an aware UTC datetime.

    Accepts ISO 8601 strings (date-only, or date-time with an optional "Z"
    or offset), ``date`` and ``datetime`` objects. Naive values are taken
    as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise CatalogError.validation("Invalid published date format", field="published_date")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ============================================================================
# Author fields
# ============================================================================


def validate_author_name(name: Optional[str]) -> str:
    if not name or len(name.strip()) < NAME_MIN_LENGTH:
        raise CatalogError.validation(
            f"Author name must be at least {NAME_MIN_LENGTH} characters long", field="name"
        )
    if len(name) > NAME_MAX_LENGTH:
        raise CatalogError.validation(
            f"Author name must not exceed {NAME_MAX_LENGTH} characters", field="name"
        )
    return name.strip()


def validate_bio(bio: Optional[str]) -> Optional[str]:
    if bio and len(bio) > BIO_MAX_LENGTH:
        raise CatalogError.validation(
            f"Author bio must not exceed {BIO_MAX_LENGTH} characters", field="bio"
        )
    return bio or None


def validate_email_format(email: Optional[str]) -> Optional[str]:
    if not email:
        return None
    if len(email) > EMAIL_MAX_LENGTH or not is_valid_email(email):
        raise CatalogError.validation("Invalid email format", field="email")
    return email


# ============================================================================
# Book fields
# ============================================================================


def validate_title(title: Optional[str]) -> str:
    if not title or not title.strip():
        raise CatalogError.validation("Book title is required", field="title")
    if len(title) > TITLE_MAX_LENGTH:
        raise CatalogError.validation(
            f"Book title must not exceed {TITLE_MAX_LENGTH} characters", field="title"
        )
    return title.strip()


def validate_description(description: Optional[str]) -> Optional[str]:
    if description and len(description) > DESCRIPTION_MAX_LENGTH:
        raise CatalogError.validation(
            f"Book description must not exceed {DESCRIPTION_MAX_LENGTH} characters",
            field="description"
        )
    return description or None


def validate_isbn_format(isbn: Optional[str]) -> Optional[str]:
    """Return the ISBN as bare digits, or None when blank."""
    if not isbn or not isbn.strip():
        return None
    if not is_valid_isbn(isbn):
        raise CatalogError.validation(
            "Invalid ISBN format. Must be ISBN-10 or ISBN-13", field="isbn"
        )
    return normalize_isbn(isbn)


def validate_published_date(
    value: Optional[Union[str, date, datetime]],
    now: Optional[datetime] = None
) -> Optional[datetime]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None

    published = parse_published_date(value)
    if published > (now or datetime.now(timezone.utc)):
        raise CatalogError.validation(
            "Published date cannot be in the future", field="published_date"
        )
    return published


# ============================================================================
# Listing parameters
# ============================================================================


def validate_pagination(limit: int, offset: int) -> Tuple[int, int]:
    if limit < 1 or limit > MAX_LIMIT:
        raise CatalogError.validation(f"Limit must be between 1 and {MAX_LIMIT}", field="limit")
    if offset < 0:
        raise CatalogError.validation("Offset must be non-negative", field="offset")
    return limit, offset


def validate_search_query(query: Optional[str]) -> str:
    if not query or len(query.strip()) < SEARCH_MIN_LENGTH:
        raise CatalogError.validation(
            f"Search query must be at least {SEARCH_MIN_LENGTH} characters long", field="q"
        )
    return query.strip()
