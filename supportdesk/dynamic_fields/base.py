from __future__ import annotations
from typing import Any, Mapping, Protocol

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from supportdesk.dynamic_fields.field import FieldDefinition


class FieldBackend(Protocol):
    field_type: str
    operators: frozenset[str]

    def parse_config(self, config: Mapping[str, Any]) -> Any:
        """Validated view of a field's ``config``; ``ValueError`` if malformed."""
        ...

    def edit_field_render(
        self,
        *,
        field: FieldDefinition,
        value: Any = None,
        possible_values_filter: Mapping[str, str] | None = None,
        mandatory: bool = False,
    ) -> str:
        ...

    def display_field_render(self, *, field: FieldDefinition, value: Any) -> str:
        ...

    def edit_field_value_get(self, *, field: FieldDefinition, params: Mapping[str, Any]) -> Any:
        ...

    def coerce(self, field: FieldDefinition, value: Any) -> Any:
        ...

    async def value_get(self, session: AsyncSession, *, field: FieldDefinition, object_id: int) -> Any:
        ...

    async def value_set(
        self,
        session: AsyncSession,
        *,
        field: FieldDefinition,
        object_id: int,
        value: Any,
        user_id: int,
    ) -> bool:
        ...

    def is_searchable(self) -> bool:
        ...

    def search_sql_get(
        self,
        *,
        field: FieldDefinition,
        table_alias: Any,
        operator: str,
        search_term: Any,
    ) -> ColumnElement[bool]:
        ...

    def search_sql_order_field_get(self, *, field: FieldDefinition, table_alias: Any) -> ColumnElement[Any]:
        ...


class ObjectTypeHook(Protocol):
    object_type: str

    async def on_value_updated(
        self,
        session: AsyncSession,
        *,
        field: FieldDefinition,
        object_id: int,
        value: Any,
        user_id: int,
    ) -> None:
        ...
