from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from supportdesk.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Ticket(Base):
    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    queue_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    customer_id: Mapped[str | None] = mapped_column(String(150), nullable=True)

    create_by: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)


class Article(Base):
    __tablename__ = "articles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey("tickets.id"), nullable=False, index=True)

    sender: Mapped[str | None] = mapped_column(String(255), nullable=True)
    subject: Mapped[str | None] = mapped_column(String(255), nullable=True)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)

    create_by: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class TicketHistory(Base):
    __tablename__ = "ticket_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey("tickets.id"), nullable=False, index=True)
    queue_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    history_type: Mapped[str] = mapped_column(String(64), nullable=False)  # e.g. TicketDynamicFieldUpdate
    name: Mapped[str] = mapped_column(String(400), nullable=False)

    create_by: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class DynamicField(Base):
    __tablename__ = "dynamic_fields"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    label: Mapped[str] = mapped_column(String(200), nullable=False)

    field_type: Mapped[str] = mapped_column(String(64), nullable=False)
    object_type: Mapped[str] = mapped_column(String(64), nullable=False)
    mandatory: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # backend specific: possible values, default value, rows/cols, ...
    config: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class DynamicFieldValue(Base):
    __tablename__ = "dynamic_field_values"
    __table_args__ = (UniqueConstraint("field_id", "object_id", name="uq_dynamic_field_value"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    field_id: Mapped[int] = mapped_column(ForeignKey("dynamic_fields.id"), nullable=False, index=True)
    object_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # each backend writes exactly one of these
    value_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    value_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    value_int: Mapped[int | None] = mapped_column(BigInteger, nullable=True)


class AuditEventType(str, enum.Enum):
    TICKET_CREATED = "TicketCreate"
    ARTICLE_CREATED = "ArticleCreate"
    TICKET_DYNAMIC_FIELD_UPDATE = "TicketDynamicFieldUpdate"
    ARTICLE_DYNAMIC_FIELD_UPDATE = "ArticleDynamicFieldUpdate"


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    object_type: Mapped[str] = mapped_column(String(64), nullable=False)
    object_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    event_type: Mapped[AuditEventType] = mapped_column(Enum(AuditEventType), nullable=False)

    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class LoopProtectionEntry(Base):
    __tablename__ = "ticket_loop_protection"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sent_to: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    sent_date: Mapped[str] = mapped_column(String(150), nullable=False)  # YYYY-MM-DD
