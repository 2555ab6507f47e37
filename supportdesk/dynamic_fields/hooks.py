from __future__ import annotations

import logging
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from supportdesk.core.audit import write_audit_event
from supportdesk.db.models import AuditEventType
from supportdesk.domain.ticket_service import get_article, get_ticket, history_add
from supportdesk.dynamic_fields.base import ObjectTypeHook
from supportdesk.dynamic_fields.field import FieldDefinition

logger = logging.getLogger(__name__)


class TicketHook:
    object_type = "Ticket"

    async def on_value_updated(
        self,
        session: AsyncSession,
        *,
        field: FieldDefinition,
        object_id: int,
        value: Any,
        user_id: int,
    ) -> None:
        ticket = await get_ticket(session, ticket_id=object_id)
        if ticket is None:
            logger.error("No ticket %s found for dynamic field %s update", object_id, field.name)
            return

        history_value = "" if value is None else value
        await history_add(
            session,
            ticket_id=ticket.id,
            queue_id=ticket.queue_id,
            history_type="TicketDynamicFieldUpdate",
            name=f"%%FieldName%%{field.name}%%Value%%{history_value}",
            user_id=user_id,
            commit=False,
        )
        await write_audit_event(
            session,
            object_type=self.object_type,
            object_id=ticket.id,
            event_type=AuditEventType.TICKET_DYNAMIC_FIELD_UPDATE,
            payload={
                "field_name": field.name,
                "value": None if value is None else str(value),
                "ticket_id": ticket.id,
                "user_id": user_id,
            },
            user_id=user_id,
        )


class ArticleHook:
    object_type = "Article"

    async def on_value_updated(
        self,
        session: AsyncSession,
        *,
        field: FieldDefinition,
        object_id: int,
        value: Any,
        user_id: int,
    ) -> None:
        article = await get_article(session, article_id=object_id)
        if article is None:
            logger.error("No article %s found for dynamic field %s update", object_id, field.name)
            return

        await write_audit_event(
            session,
            object_type="Ticket",
            object_id=article.ticket_id,
            event_type=AuditEventType.ARTICLE_DYNAMIC_FIELD_UPDATE,
            payload={"ticket_id": article.ticket_id, "article_id": article.id},
            user_id=user_id,
        )


def default_hooks() -> Dict[str, ObjectTypeHook]:
    hooks = [TicketHook(), ArticleHook()]
    return {h.object_type: h for h in hooks}
