"""
FastAPI dependency injection for the database pool, repositories and services.

Provides injectable dependencies for:
- Database connection pool (asyncpg) and schema creation
- Repository instances
- Service instances

Tests replace ``get_author_repository`` and ``get_book_repository`` through
``app.dependency_overrides`` to run the routers without a database.
"""

import asyncpg
import structlog
from typing import Optional
from fastapi import Depends
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateIndex, CreateTable

from catalog_api.config import get_settings
from catalog_api.models.common import Base
from catalog_api.repositories.author_repo import AuthorRepository
from catalog_api.repositories.book_repo import BookRepository
from catalog_api.services.author_service import AuthorService
from catalog_api.services.book_service import BookService

logger = structlog.get_logger(__name__)


# ============================================================================
# DATABASE CONNECTION POOL
# ============================================================================

_pool: Optional[asyncpg.Pool] = None


async def init_db_pool() -> asyncpg.Pool:
    """
    Initialize database connection pool.

    Should be called during application startup.

    Returns:
        asyncpg connection pool
    """
    global _pool

    if _pool is not None:
        return _pool

    settings = get_settings()

    try:
        _pool = await asyncpg.create_pool(
            settings.database_dsn,
            min_size=settings.database_pool_min_size,
            max_size=settings.database_pool_max_size,
            command_timeout=settings.database_command_timeout
        )

        logger.info(
            "database_pool_initialized",
            min_size=settings.database_pool_min_size,
            max_size=settings.database_pool_max_size,
            database=settings.database_dsn.split("@")[-1]
        )

        return _pool

    except Exception as e:
        logger.error("database_pool_init_failed", error=str(e))
        raise


async def close_db_pool():
    """
    Close database connection pool.

    Should be called during application shutdown.
    """
    global _pool

    if _pool is not None:
        await _pool.close()
        logger.info("database_pool_closed")
        _pool = None


def get_db_pool() -> asyncpg.Pool:
    """
    Get database connection pool.

    Returns:
        asyncpg connection pool

    Raises:
        RuntimeError: If pool is not initialized
    """
    if _pool is None:
        logger.error("database_pool_not_initialized")
        raise RuntimeError(
            "Database pool not initialized. Call init_db_pool() during startup."
        )
    return _pool


def schema_statements() -> list:
    """
    Render the catalog DDL for PostgreSQL.

    Tables come out in dependency order (authors before books) and every
    statement is idempotent.

    Returns:
        List of SQL strings
    """
    dialect = postgresql.dialect()
    statements = []

    for table in Base.metadata.sorted_tables:
        statements.append(str(CreateTable(table, if_not_exists=True).compile(dialect=dialect)))
        for index in sorted(table.indexes, key=lambda i: i.name):
            statements.append(str(CreateIndex(index, if_not_exists=True).compile(dialect=dialect)))

    return statements


async def create_schema(pool: asyncpg.Pool) -> None:
    """
    Create the catalog tables and indexes if they do not exist.

    Args:
        pool: asyncpg connection pool
    """
    async with pool.acquire() as conn:
        async with conn.transaction():
            for statement in schema_statements():
                await conn.execute(statement)

    logger.info("database_schema_ready", tables=list(Base.metadata.tables))


# ============================================================================
# REPOSITORY DEPENDENCIES
# ============================================================================


def get_author_repository() -> AuthorRepository:
    """
    Get author repository instance.

    Returns:
        Author repository bound to the application pool
    """
    return AuthorRepository(get_db_pool())


def get_book_repository() -> BookRepository:
    """
    Get book repository instance.

    Returns:
        Book repository bound to the application pool
    """
    return BookRepository(get_db_pool())


# ============================================================================
# SERVICE DEPENDENCIES
# ============================================================================


def get_author_service(
    author_repo: AuthorRepository = Depends(get_author_repository)
) -> AuthorService:
    """
    Get author service with injected repository.

    Example:
        @router.get("/authors/{author_id}")
        async def get_author(
            author_id: UUID,
            service: AuthorService = Depends(get_author_service)
        ):
            return await service.get(author_id)
    """
    return AuthorService(author_repo)


def get_book_service(
    book_repo: BookRepository = Depends(get_book_repository),
    author_repo: AuthorRepository = Depends(get_author_repository)
) -> BookService:
    """Get book service with injected book and author repositories."""
    return BookService(book_repo, author_repo)

