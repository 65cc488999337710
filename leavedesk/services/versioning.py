"""Compare-and-swap writes for version-stamped rows.

Balances and applications are never updated through the ORM unit of work.
Writers read a row together with its ``version``, compute the new column
values in memory and persist them with a single conditional UPDATE; a zero
rowcount means another writer got there first and the caller re-reads.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import update
from sqlmodel import col

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leavedesk.models.base import UUIDBase, VersionedMixin


async def compare_and_swap(
    session: AsyncSession,
    model: type[UUIDBase | VersionedMixin],
    row_id: uuid.UUID,
    expected_version: int,
    values: dict[str, Any],
) -> bool:
    """Write ``values`` and bump the version if the row is still at ``expected_version``."""
    stmt = (
        update(model)
        .where(
            col(model.id) == row_id,  # type: ignore[union-attr]
            col(model.version) == expected_version,  # type: ignore[union-attr]
        )
        .values(**values, version=expected_version + 1)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1  # type: ignore[attr-defined]
