from datetime import datetime

from pydantic import BaseModel


class TicketCreateRequest(BaseModel):
    title: str
    user_id: int
    queue_id: int = 1
    customer_id: str | None = None


class TicketResponse(BaseModel):
    id: int
    title: str
    queue_id: int
    customer_id: str | None = None
    create_by: int
    created_at: datetime


class ArticleCreateRequest(BaseModel):
    user_id: int
    sender: str | None = None
    subject: str | None = None
    body: str | None = None


class ArticleResponse(BaseModel):
    id: int
    ticket_id: int
    sender: str | None = None
    subject: str | None = None
    body: str | None = None
    create_by: int
    created_at: datetime


class TicketHistoryResponse(BaseModel):
    id: int
    ticket_id: int
    queue_id: int | None = None
    history_type: str
    name: str
    create_by: int
    created_at: datetime
