from __future__ import annotations
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from supportdesk.db.models import AuditEvent, AuditEventType

async def write_audit_event(
    session: AsyncSession,
    *,
    object_type: str,
    object_id: int,
    event_type: AuditEventType,
    payload: Dict[str, Any],
    user_id: int | None = None,
    commit: bool = True
) -> None:
    session.add(
        AuditEvent(
            object_type=object_type,
            object_id=object_id,
            event_type=event_type,
            payload=payload,
            user_id=user_id,
        )
    )
    if commit:
        await session.commit()
