from __future__ import annotations
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from supportdesk.db.models import DynamicFieldValue

VALUE_COLUMNS = ("value_text", "value_date", "value_int")


async def get_value_row(session: AsyncSession, *, field_id: int, object_id: int) -> DynamicFieldValue | None:
    res = await session.execute(
        select(DynamicFieldValue).where(
            DynamicFieldValue.field_id == field_id,
            DynamicFieldValue.object_id == object_id,
        )
    )
    return res.scalar_one_or_none()


async def read_value(session: AsyncSession, *, field_id: int, object_id: int, column: str) -> Any:
    row = await get_value_row(session, field_id=field_id, object_id=object_id)
    if row is None:
        return None
    return getattr(row, column)


async def write_value(
    session: AsyncSession,
    *,
    field_id: int,
    object_id: int,
    column: str,
    value: Any,
) -> DynamicFieldValue:
    if column not in VALUE_COLUMNS:
        raise ValueError(f"unknown value column: {column}")

    row = await get_value_row(session, field_id=field_id, object_id=object_id)
    if row is None:
        row = DynamicFieldValue(field_id=field_id, object_id=object_id)
        session.add(row)

    # whole-value replace: the other typed columns are cleared
    for name in VALUE_COLUMNS:
        setattr(row, name, value if name == column else None)

    await session.commit()
    await session.refresh(row)
    return row
