"""FastAPI service for the library catalog.

This package provides REST API endpoints for authors and books, and the
consistency services that keep author references, ISBNs and emails valid.
"""

__version__ = "1.0.0"
