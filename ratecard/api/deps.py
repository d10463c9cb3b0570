"""
Shared FastAPI dependencies for the ratecard backend.

Provides the async database session dependency used by all route handlers
and the ``{supplier_id}`` path dependency shared by the supplier routers.
Sessions are injected per request; nothing below the routes creates its own
connection.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ratecard.core.config import settings
from ratecard.models import Supplier
from ratecard.services.rateCatalog import SupplierNotFoundError, get_supplier

# ---------------------------------------------------------------------------
# Async engine & session factory
# ---------------------------------------------------------------------------
# The engine is created once at module import time.  The session factory
# produces lightweight ``AsyncSession`` instances that are scoped to a single
# request via the ``get_db`` dependency below.
# ---------------------------------------------------------------------------

engine = create_async_engine(
    settings.database_url,
    echo=settings.sql_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for one request.

    The session commits when the handler returns normally and rolls back on
    any exception, so a rate write and the serviceable resync it triggers
    always land together.

    Usage in a route::

        @router.get("/items")
        async def list_items(db: DBSession):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ---------------------------------------------------------------------------
# Annotated type alias for convenience
# ---------------------------------------------------------------------------
DBSession = Annotated[AsyncSession, Depends(get_db)]


# ---------------------------------------------------------------------------
# Supplier path dependency
# ---------------------------------------------------------------------------

async def get_supplier_or_404(supplier_id: int, db: DBSession) -> Supplier:
    """Resolve the ``{supplier_id}`` path parameter or respond 404."""
    try:
        return await get_supplier(db, supplier_id)
    except SupplierNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


CurrentSupplier = Annotated[Supplier, Depends(get_supplier_or_404)]
