"""
Record-store access helpers shared by the service layer.

Every service query goes through ``execute`` so that a lost or refused
database connection surfaces as ``StorageUnavailableError`` (HTTP 503)
instead of leaking a driver exception or, worse, being read as an empty
result set.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence, Union

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class StorageUnavailableError(Exception):
    """Raised when the rate/coverage/exclusion store cannot be reached."""

    def __init__(self, detail: str = "Rate store is unavailable") -> None:
        self.detail = detail
        super().__init__(detail)


def dialect_name(db: AsyncSession) -> str:
    """Name of the SQL dialect the session is bound to (``postgresql``, ``sqlite``)."""
    return db.get_bind().dialect.name


async def execute(
    db: AsyncSession,
    statement: Any,
    params: Optional[Union[dict[str, Any], Sequence[dict[str, Any]]]] = None,
):
    try:
        if params is None:
            return await db.execute(statement)
        return await db.execute(statement, params)
    except (OperationalError, InterfaceError) as exc:
        logger.error("Rate store unreachable: %s", exc, exc_info=True)
        raise StorageUnavailableError() from exc


def dialect_insert(db: AsyncSession, model: Any):
    """``INSERT`` construct supporting ``ON CONFLICT`` for the bound dialect."""
    name = dialect_name(db)
    if name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Upserts are not supported on dialect {name!r}")
    return insert(model)
