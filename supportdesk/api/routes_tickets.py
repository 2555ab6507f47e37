from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from supportdesk.api.deps import get_dispatcher
from supportdesk.api.schemas_events import AuditEventResponse
from supportdesk.api.schemas_tickets import (
    ArticleCreateRequest,
    ArticleResponse,
    TicketCreateRequest,
    TicketHistoryResponse,
    TicketResponse,
)
from supportdesk.db.models import AuditEvent
from supportdesk.db.session import get_session
from supportdesk.domain.ticket_service import (
    create_article,
    create_ticket,
    get_ticket,
    history_list,
    search_tickets,
)
from supportdesk.dynamic_fields.dispatcher import DynamicFieldDispatcher
from supportdesk.dynamic_fields.field_service import get_field

router = APIRouter(prefix="/tickets", tags=["tickets"])


async def _ensure_ticket_exists(session: AsyncSession, ticket_id: int) -> None:
    if await get_ticket(session, ticket_id=ticket_id) is None:
        raise HTTPException(status_code=404, detail="ticket not found")


@router.post("", response_model=TicketResponse, status_code=201)
async def create_ticket_endpoint(req: TicketCreateRequest, session: AsyncSession = Depends(get_session)):
    ticket = await create_ticket(
        session,
        title=req.title,
        user_id=req.user_id,
        queue_id=req.queue_id,
        customer_id=req.customer_id,
    )
    return TicketResponse.model_validate(ticket, from_attributes=True)


# declared before /{ticket_id} so "search" is not taken for an id
@router.get("/search", response_model=list[TicketResponse])
async def search_tickets_endpoint(
    field_id: int | None = None,
    operator: str = "Equals",
    term: str | None = None,
    order_by_field_id: int | None = None,
    limit: int = 100,
    session: AsyncSession = Depends(get_session),
    dispatcher: DynamicFieldDispatcher = Depends(get_dispatcher),
):
    field = None
    if field_id is not None:
        field = await get_field(session, field_id=field_id)
        if field is None:
            raise HTTPException(status_code=404, detail="dynamic field not found")

    order_field = None
    if order_by_field_id is not None:
        order_field = await get_field(session, field_id=order_by_field_id)
        if order_field is None:
            raise HTTPException(status_code=404, detail="dynamic field not found")

    tickets = await search_tickets(
        session,
        dispatcher=dispatcher,
        field=field,
        operator=operator,
        term=term,
        order_field=order_field,
        limit=min(max(limit, 1), 1000),
    )
    return [TicketResponse.model_validate(t, from_attributes=True) for t in tickets]


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket_endpoint(ticket_id: int, session: AsyncSession = Depends(get_session)):
    ticket = await get_ticket(session, ticket_id=ticket_id)
    if ticket is None:
        raise HTTPException(status_code=404, detail="ticket not found")
    return TicketResponse.model_validate(ticket, from_attributes=True)


@router.get("/{ticket_id}/history", response_model=list[TicketHistoryResponse])
async def get_ticket_history(ticket_id: int, session: AsyncSession = Depends(get_session)):
    await _ensure_ticket_exists(session, ticket_id)
    rows = await history_list(session, ticket_id=ticket_id)
    return [TicketHistoryResponse.model_validate(r, from_attributes=True) for r in rows]


@router.get("/{ticket_id}/events", response_model=list[AuditEventResponse])
async def get_ticket_events(ticket_id: int, session: AsyncSession = Depends(get_session)):
    await _ensure_ticket_exists(session, ticket_id)

    res = await session.execute(
        select(AuditEvent)
        .where(AuditEvent.object_type == "Ticket", AuditEvent.object_id == ticket_id)
        .order_by(AuditEvent.id.asc())
    )
    events = res.scalars().all()
    return [AuditEventResponse.model_validate(e, from_attributes=True) for e in events]


@router.post("/{ticket_id}/articles", response_model=ArticleResponse, status_code=201)
async def create_article_endpoint(
    ticket_id: int, req: ArticleCreateRequest, session: AsyncSession = Depends(get_session)
):
    try:
        article = await create_article(
            session,
            ticket_id=ticket_id,
            user_id=req.user_id,
            sender=req.sender,
            subject=req.subject,
            body=req.body,
        )
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ArticleResponse.model_validate(article, from_attributes=True)
