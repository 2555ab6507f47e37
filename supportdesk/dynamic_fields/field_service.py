from __future__ import annotations

from typing import Any, Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from supportdesk.db.models import DynamicField
from supportdesk.dynamic_fields.field import FieldDefinition
from supportdesk.dynamic_fields.registry import BackendRegistry


async def add_field(
    session: AsyncSession,
    *,
    backends: BackendRegistry,
    name: str,
    label: str,
    field_type: str,
    object_type: str,
    mandatory: bool = False,
    config: Dict[str, Any] | None = None,
) -> FieldDefinition:
    if field_type not in backends:
        raise ValueError(f"no backend registered for field type {field_type}")
    backends.get(field_type).parse_config(config or {})

    res = await session.execute(select(DynamicField.id).where(DynamicField.name == name))
    if res.scalar_one_or_none() is not None:
        raise ValueError(f"a dynamic field named {name} already exists")

    row = DynamicField(
        name=name,
        label=label,
        field_type=field_type,
        object_type=object_type,
        mandatory=mandatory,
        config=config or {},
    )
    session.add(row)
    await session.commit()
    await session.refresh(row)
    return FieldDefinition.model_validate(row)


async def get_field(session: AsyncSession, *, field_id: int) -> FieldDefinition | None:
    res = await session.execute(select(DynamicField).where(DynamicField.id == field_id))
    row = res.scalar_one_or_none()
    if row is None:
        return None
    return FieldDefinition.model_validate(row)


async def list_fields(session: AsyncSession, *, object_type: str | None = None) -> list[FieldDefinition]:
    stmt = select(DynamicField).order_by(DynamicField.id.asc())
    if object_type:
        stmt = stmt.where(DynamicField.object_type == object_type)
    res = await session.execute(stmt)
    return [FieldDefinition.model_validate(r) for r in res.scalars().all()]
