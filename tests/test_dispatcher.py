from __future__ import annotations

import logging
from datetime import datetime

import pytest
from sqlalchemy import event, select, text
from sqlalchemy.orm import aliased

from supportdesk.db.models import AuditEvent, AuditEventType, DynamicField, DynamicFieldValue, TicketHistory
from supportdesk.domain.ticket_service import create_article, create_ticket, search_tickets
from supportdesk.dynamic_fields.backends import TextBackend
from supportdesk.dynamic_fields.dispatcher import DynamicFieldDispatcher
from supportdesk.dynamic_fields.field import FieldDefinition
from supportdesk.dynamic_fields.hooks import default_hooks
from supportdesk.dynamic_fields.registry import BackendRegistry

DISPATCHER_LOGGER = "supportdesk.dynamic_fields.dispatcher"


def _errors(caplog) -> list[logging.LogRecord]:
    return [r for r in caplog.records if r.levelno == logging.ERROR]


@pytest.fixture
def write_probe(engine):
    """Collects INSERT/UPDATE statements hitting dynamic_field_values."""
    writes: list[str] = []

    def _on_execute(conn, cursor, statement, parameters, context, executemany):
        head = statement.lstrip().upper()
        if head.startswith(("INSERT", "UPDATE")) and "DYNAMIC_FIELD_VALUES" in head:
            writes.append(statement)

    event.listen(engine.sync_engine, "before_cursor_execute", _on_execute)
    yield writes
    event.remove(engine.sync_engine, "before_cursor_execute", _on_execute)


# ---------------------------------------------------------------------------
# unregistered type / malformed input
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_unregistered_type_every_operation_absent_with_one_error(session, dispatcher, caplog):
    ghost = FieldDefinition(id=99, name="Ghost", label="Ghost", field_type="Hologram", object_type="Ticket")
    alias = aliased(DynamicFieldValue)
    caplog.set_level(logging.DEBUG, logger=DISPATCHER_LOGGER)

    async def _ops():
        yield "edit_field_render", dispatcher.edit_field_render(field=ghost)
        yield "display_field_render", dispatcher.display_field_render(field=ghost, value="x")
        yield "value_get", await dispatcher.value_get(session, field=ghost, object_id=1)
        yield "value_set", await dispatcher.value_set(session, field=ghost, object_id=1, value="x", user_id=1)
        yield "handle_edit_request", await dispatcher.handle_edit_request(
            session, field=ghost, object_id=1, params={"DynamicField_Ghost": "x"}, user_id=1
        )
        yield "is_searchable", dispatcher.is_searchable(field=ghost)
        yield "search_sql_get", dispatcher.search_sql_get(
            field=ghost, table_alias=alias, operator="Equals", search_term="x"
        )
        yield "search_sql_order_field_get", dispatcher.search_sql_order_field_get(field=ghost, table_alias=alias)

    caplog.clear()
    async for name, result in _ops():
        assert result is None, name
        errors = _errors(caplog)
        assert len(errors) == 1, name
        assert "Backend Hologram is invalid!" in errors[0].getMessage()
        caplog.clear()


@pytest.mark.asyncio
async def test_value_set_requires_user_and_object(session, dispatcher, make_field, caplog):
    field = await make_field("Urgency")

    assert await dispatcher.value_set(session, field=field, object_id=1, value="x", user_id=None) is None
    assert "Need user_id!" in caplog.text

    caplog.clear()
    assert await dispatcher.value_set(session, field=field, object_id=0, value="x", user_id=1) is None
    assert "Need object_id!" in caplog.text


def test_malformed_field_mapping_is_rejected(dispatcher, caplog):
    html = dispatcher.edit_field_render(field={"id": 1, "name": "Foo", "object_type": "Ticket"})
    assert html is None
    assert "Need field_type in field configuration!" in caplog.text


def test_field_mapping_is_accepted(dispatcher):
    html = dispatcher.edit_field_render(
        field={"id": 1, "name": "Foo", "label": "Foo", "field_type": "Text", "object_type": "Ticket"},
        value="bar",
    )
    assert 'name="DynamicField_Foo"' in html
    assert 'value="bar"' in html


def test_possible_values_filter_must_be_a_non_empty_mapping(dispatcher, caplog):
    field = FieldDefinition(
        id=3,
        name="Priority",
        field_type="Dropdown",
        object_type="Ticket",
        config={"possible_values": {"1": "low", "2": "high"}},
    )
    assert dispatcher.edit_field_render(field=field, possible_values_filter={}) is None
    assert "The possible values filter is invalid" in caplog.text


# ---------------------------------------------------------------------------
# set / get
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize(
    "field_type,config,value,expected",
    [
        ("Text", {}, "hello", "hello"),
        ("TextArea", {}, "line one\nline two", "line one\nline two"),
        ("Checkbox", {}, True, 1),
        ("Dropdown", {"possible_values": {"low": "Low", "high": "High"}}, "high", "high"),
        ("DateTime", {}, "2024-05-01 10:30:00", datetime(2024, 5, 1, 10, 30)),
    ],
)
async def test_set_then_get_returns_value(session, dispatcher, make_field, ticket, field_type, config, value, expected):
    field = await make_field(f"Field{field_type}", field_type=field_type, config=config)

    assert await dispatcher.value_set(session, field=field, object_id=ticket.id, value=value, user_id=1) is True
    assert await dispatcher.value_get(session, field=field, object_id=ticket.id) == expected


@pytest.mark.asyncio
async def test_set_overwrites_previous_value(session, dispatcher, make_field, ticket):
    field = await make_field("Urgency")

    await dispatcher.value_set(session, field=field, object_id=ticket.id, value="low", user_id=1)
    await dispatcher.value_set(session, field=field, object_id=ticket.id, value="high", user_id=1)

    assert await dispatcher.value_get(session, field=field, object_id=ticket.id) == "high"
    rows = (await session.execute(select(DynamicFieldValue))).scalars().all()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_setting_same_value_performs_no_write(session, dispatcher, make_field, ticket, write_probe):
    field = await make_field("Urgency")

    assert await dispatcher.value_set(session, field=field, object_id=ticket.id, value="high", user_id=1)
    assert len(write_probe) == 1

    assert await dispatcher.value_set(session, field=field, object_id=ticket.id, value="high", user_id=1) is True
    assert len(write_probe) == 1

    history = (
        await session.execute(
            select(TicketHistory).where(TicketHistory.history_type == "TicketDynamicFieldUpdate")
        )
    ).scalars().all()
    assert len(history) == 1


@pytest.mark.asyncio
async def test_invalid_dropdown_value_is_rejected(session, dispatcher, make_field, ticket, write_probe, caplog):
    field = await make_field("Priority", field_type="Dropdown", config={"possible_values": {"1": "low"}})

    assert await dispatcher.value_set(session, field=field, object_id=ticket.id, value="9", user_id=1) is None
    assert write_probe == []
    assert "is not a possible value" in caplog.text


@pytest.mark.asyncio
async def test_handle_edit_request_reads_form_params(session, dispatcher, make_field, ticket):
    field = await make_field("Escalated", field_type="Checkbox")

    assert await dispatcher.handle_edit_request(
        session, field=field, object_id=ticket.id, params={"DynamicField_Escalated": "1"}, user_id=1
    )
    assert await dispatcher.value_get(session, field=field, object_id=ticket.id) == 1

    # unchecked box: parameter absent
    assert await dispatcher.handle_edit_request(session, field=field, object_id=ticket.id, params={}, user_id=1)
    assert await dispatcher.value_get(session, field=field, object_id=ticket.id) == 0


# ---------------------------------------------------------------------------
# object type hooks
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_ticket_update_adds_history_and_event(session, dispatcher, make_field, ticket):
    field = await make_field("Urgency")

    await dispatcher.value_set(session, field=field, object_id=ticket.id, value="high", user_id=7)

    history = (
        await session.execute(
            select(TicketHistory).where(TicketHistory.history_type == "TicketDynamicFieldUpdate")
        )
    ).scalar_one()
    assert history.ticket_id == ticket.id
    assert history.queue_id == 3
    assert history.name == "%%FieldName%%Urgency%%Value%%high"
    assert history.create_by == 7

    ev = (
        await session.execute(
            select(AuditEvent).where(AuditEvent.event_type == AuditEventType.TICKET_DYNAMIC_FIELD_UPDATE)
        )
    ).scalar_one()
    assert ev.object_id == ticket.id
    assert ev.payload == {"field_name": "Urgency", "value": "high", "ticket_id": ticket.id, "user_id": 7}


@pytest.mark.asyncio
async def test_article_update_emits_event_on_ticket(session, dispatcher, make_field, ticket):
    article = await create_article(session, ticket_id=ticket.id, user_id=1, subject="Re: printer")
    field = await make_field("Sentiment", object_type="Article")

    assert await dispatcher.value_set(session, field=field, object_id=article.id, value="angry", user_id=2)

    ev = (
        await session.execute(
            select(AuditEvent).where(AuditEvent.event_type == AuditEventType.ARTICLE_DYNAMIC_FIELD_UPDATE)
        )
    ).scalar_one()
    assert ev.object_type == "Ticket"
    assert ev.object_id == ticket.id
    assert ev.payload == {"ticket_id": ticket.id, "article_id": article.id}


@pytest.mark.asyncio
async def test_other_object_types_get_no_side_effects(session, dispatcher, make_field):
    field = await make_field("Segment", object_type="CustomerUser")
    events_before = len((await session.execute(select(AuditEvent))).scalars().all())

    assert await dispatcher.value_set(session, field=field, object_id=42, value="enterprise", user_id=1)

    assert len((await session.execute(select(AuditEvent))).scalars().all()) == events_before
    assert (await session.execute(select(TicketHistory))).scalars().all() == []


@pytest.mark.asyncio
async def test_object_types_can_opt_in_with_a_hook(session, dispatcher, make_field):
    calls = []

    class CustomerUserHook:
        object_type = "CustomerUser"

        async def on_value_updated(self, session, *, field, object_id, value, user_id):
            calls.append((field.name, object_id, value, user_id))

    dispatcher.register_hook(CustomerUserHook())
    field = await make_field("Segment", object_type="CustomerUser")

    await dispatcher.value_set(session, field=field, object_id=42, value="enterprise", user_id=5)
    assert calls == [("Segment", 42, "enterprise", 5)]


@pytest.mark.asyncio
async def test_missing_ticket_keeps_value_but_skips_history(session, dispatcher, make_field, caplog):
    field = await make_field("Urgency")

    assert await dispatcher.value_set(session, field=field, object_id=404, value="high", user_id=1) is True
    assert await dispatcher.value_get(session, field=field, object_id=404) == "high"
    assert "No ticket 404 found" in caplog.text
    assert (await session.execute(select(TicketHistory))).scalars().all() == []


# ---------------------------------------------------------------------------
# search
# ---------------------------------------------------------------------------

class SpyTextBackend(TextBackend):
    def __init__(self) -> None:
        self.search_calls = 0

    def search_sql_get(self, **kwargs):
        self.search_calls += 1
        return super().search_sql_get(**kwargs)


def test_empty_search_term_does_not_delegate(caplog):
    spy = SpyTextBackend()
    reg = BackendRegistry()
    reg.register("Text", spy)
    dispatcher = DynamicFieldDispatcher(backends=reg, hooks=default_hooks())
    field = FieldDefinition(id=1, name="Urgency", field_type="Text", object_type="Ticket")
    alias = aliased(DynamicFieldValue)

    for term in (None, ""):
        assert dispatcher.search_sql_get(field=field, table_alias=alias, operator="Equals", search_term=term) is None
    assert spy.search_calls == 0
    assert _errors(caplog) == []

    assert dispatcher.search_sql_get(field=field, table_alias=alias, operator="Equals", search_term="x") is not None
    assert spy.search_calls == 1


def test_unsupported_operator_is_logged(dispatcher, caplog):
    field = FieldDefinition(id=1, name="Escalated", field_type="Checkbox", object_type="Ticket")
    alias = aliased(DynamicFieldValue)

    assert dispatcher.search_sql_get(field=field, table_alias=alias, operator="Like", search_term="1") is None
    assert "unsupported search operator Like" in caplog.text


@pytest.mark.asyncio
async def test_search_tickets_by_text_like(session, dispatcher, make_field):
    field = await make_field("Product")
    tickets = []
    for title, product in [("one", "alpha"), ("two", "beta"), ("three", "Alphabet")]:
        t = await create_ticket(session, title=title, user_id=1)
        await dispatcher.value_set(session, field=field, object_id=t.id, value=product, user_id=1)
        tickets.append(t)

    found = await search_tickets(session, dispatcher=dispatcher, field=field, operator="Like", term="alpha*")
    assert [t.title for t in found] == ["one", "three"]

    found = await search_tickets(session, dispatcher=dispatcher, field=field, operator="Equals", term="beta")
    assert [t.title for t in found] == ["two"]


@pytest.mark.asyncio
async def test_search_tickets_ordered_by_datetime_field(session, dispatcher, make_field):
    due = await make_field("DueDate", field_type="DateTime")
    for title, stamp in [("late", "2024-03-01 09:00:00"), ("early", "2024-01-01 09:00:00"), ("mid", "2024-02-01 09:00:00")]:
        t = await create_ticket(session, title=title, user_id=1)
        await dispatcher.value_set(session, field=due, object_id=t.id, value=stamp, user_id=1)

    ordered = await search_tickets(session, dispatcher=dispatcher, order_field=due)
    assert [t.title for t in ordered] == ["early", "mid", "late"]

    after = await search_tickets(
        session, dispatcher=dispatcher, field=due, operator="GreaterThan", term="2024-01-15 00:00:00", order_field=due
    )
    assert [t.title for t in after] == ["mid", "late"]


@pytest.mark.asyncio
async def test_like_treats_percent_and_underscore_literally(session, dispatcher, make_field):
    field = await make_field("Discount")
    for title, value in [("pct", "100%"), ("num", "1000"), ("under", "a_c"), ("plain", "abc")]:
        t = await create_ticket(session, title=title, user_id=1)
        await dispatcher.value_set(session, field=field, object_id=t.id, value=value, user_id=1)

    async def like(term):
        found = await search_tickets(session, dispatcher=dispatcher, field=field, operator="Like", term=term)
        return [t.title for t in found]

    assert await like("100%") == ["pct"]
    assert await like("a_c") == ["under"]
    assert await like("100*") == ["pct", "num"]


# ---------------------------------------------------------------------------
# malformed field configuration
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_malformed_dropdown_config_is_absent_not_raised(session, dispatcher, caplog):
    field = FieldDefinition(
        id=5,
        name="Priority",
        field_type="Dropdown",
        object_type="Ticket",
        config={"possible_values": ["low", "high"]},
    )

    assert await dispatcher.value_set(session, field=field, object_id=1, value="low", user_id=1) is None
    assert dispatcher.display_field_render(field=field, value="low") is None
    assert dispatcher.edit_field_render(field=field) is None
    assert "invalid Dropdown field configuration" in caplog.text
    assert len(_errors(caplog)) == 3


def test_malformed_textarea_config_is_absent_not_raised(dispatcher, caplog):
    field = FieldDefinition(id=6, name="Notes", field_type="TextArea", object_type="Ticket", config={"rows": None})

    assert dispatcher.edit_field_render(field=field) is None
    assert "rows" in caplog.text


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "field_type,config,problem",
    [
        ("Dropdown", {"possible_values": ["a"]}, "possible_values"),
        ("Dropdown", {"possible_values": "low,high"}, "possible_values"),
        ("TextArea", {"rows": None}, "rows"),
        ("TextArea", {"cols": 0}, "cols"),
        ("Checkbox", {"default_value": 3}, "default_value"),
    ],
)
async def test_add_field_rejects_malformed_config(session, make_field, field_type, config, problem):
    with pytest.raises(ValueError, match=problem):
        await make_field("Broken", field_type=field_type, config=config)

    assert (await session.execute(select(DynamicField))).scalars().all() == []


# ---------------------------------------------------------------------------
# storage failures
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_storage_failure_is_logged_and_absent(session, dispatcher, make_field, caplog):
    field = await make_field("Urgency")
    await session.execute(text("DROP TABLE dynamic_field_values"))
    await session.commit()

    assert await dispatcher.value_get(session, field=field, object_id=1) is None
    assert "Could not read field Urgency for Ticket ID 1" in caplog.text

    assert await dispatcher.value_set(session, field=field, object_id=1, value="high", user_id=1) is None
    assert "Could not update field Urgency for Ticket ID 1!" in caplog.text
