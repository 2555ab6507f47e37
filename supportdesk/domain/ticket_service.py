from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from supportdesk.core.audit import write_audit_event
from supportdesk.db.models import Article, AuditEventType, DynamicFieldValue, Ticket, TicketHistory

if TYPE_CHECKING:
    from supportdesk.dynamic_fields.dispatcher import DynamicFieldDispatcher
    from supportdesk.dynamic_fields.field import FieldDefinition


async def create_ticket(
    session: AsyncSession,
    *,
    title: str,
    user_id: int,
    queue_id: int = 1,
    customer_id: str | None = None,
) -> Ticket:
    ticket = Ticket(title=title, queue_id=queue_id, customer_id=customer_id, create_by=user_id)
    session.add(ticket)
    await session.commit()
    await session.refresh(ticket)

    await history_add(
        session,
        ticket_id=ticket.id,
        queue_id=ticket.queue_id,
        history_type="NewTicket",
        name=f"%%{ticket.title}%%{ticket.queue_id}",
        user_id=user_id,
        commit=False,
    )
    await write_audit_event(
        session,
        object_type="Ticket",
        object_id=ticket.id,
        event_type=AuditEventType.TICKET_CREATED,
        payload={"ticket_id": ticket.id, "queue_id": ticket.queue_id},
        user_id=user_id,
    )
    return ticket


async def get_ticket(session: AsyncSession, *, ticket_id: int) -> Ticket | None:
    res = await session.execute(select(Ticket).where(Ticket.id == ticket_id))
    return res.scalar_one_or_none()


async def create_article(
    session: AsyncSession,
    *,
    ticket_id: int,
    user_id: int,
    sender: str | None = None,
    subject: str | None = None,
    body: str | None = None,
) -> Article:
    ticket = await get_ticket(session, ticket_id=ticket_id)
    if ticket is None:
        raise ValueError("ticket not found")

    article = Article(ticket_id=ticket_id, sender=sender, subject=subject, body=body, create_by=user_id)
    session.add(article)
    await session.commit()
    await session.refresh(article)

    await write_audit_event(
        session,
        object_type="Ticket",
        object_id=ticket_id,
        event_type=AuditEventType.ARTICLE_CREATED,
        payload={"ticket_id": ticket_id, "article_id": article.id},
        user_id=user_id,
    )
    return article


async def get_article(session: AsyncSession, *, article_id: int) -> Article | None:
    res = await session.execute(select(Article).where(Article.id == article_id))
    return res.scalar_one_or_none()


async def history_add(
    session: AsyncSession,
    *,
    ticket_id: int,
    queue_id: int | None,
    history_type: str,
    name: str,
    user_id: int,
    commit: bool = True,
) -> None:
    session.add(
        TicketHistory(
            ticket_id=ticket_id,
            queue_id=queue_id,
            history_type=history_type,
            name=name[:400],
            create_by=user_id,
        )
    )
    if commit:
        await session.commit()


async def history_list(session: AsyncSession, *, ticket_id: int) -> list[TicketHistory]:
    res = await session.execute(
        select(TicketHistory).where(TicketHistory.ticket_id == ticket_id).order_by(TicketHistory.id.asc())
    )
    return list(res.scalars().all())


async def search_tickets(
    session: AsyncSession,
    *,
    dispatcher: DynamicFieldDispatcher,
    field: FieldDefinition | None = None,
    operator: str = "Equals",
    term: str | None = None,
    order_field: FieldDefinition | None = None,
    limit: int = 100,
) -> list[Ticket]:
    """
    Tickets filtered by one dynamic field predicate and/or ordered by a
    dynamic field. A field whose predicate can't be built matches nothing.
    """
    stmt = select(Ticket)

    if field is not None and term not in (None, ""):
        dfv = aliased(DynamicFieldValue, name="dfv_search")
        predicate = dispatcher.search_sql_get(field=field, table_alias=dfv, operator=operator, search_term=term)
        if predicate is None:
            return []
        stmt = stmt.join(dfv, (dfv.object_id == Ticket.id) & (dfv.field_id == field.id)).where(predicate)

    if order_field is not None:
        dfo = aliased(DynamicFieldValue, name="dfv_order")
        order_key = dispatcher.search_sql_order_field_get(field=order_field, table_alias=dfo)
        if order_key is not None:
            stmt = stmt.outerjoin(dfo, (dfo.object_id == Ticket.id) & (dfo.field_id == order_field.id))
            stmt = stmt.order_by(order_key.asc())

    stmt = stmt.order_by(Ticket.id.asc()).limit(limit)
    res = await session.execute(stmt)
    return list(res.scalars().all())
