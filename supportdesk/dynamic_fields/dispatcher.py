"""
Uniform operation surface over all dynamic field backends.

Every public method validates its input, resolves the backend registered
for the field's type and delegates to it. Failures never raise: they are
logged at ERROR level and reported as ``None``, so callers must check the
result.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from supportdesk.core.config import settings
from supportdesk.dynamic_fields.base import FieldBackend, ObjectTypeHook
from supportdesk.dynamic_fields.field import FieldDefinition
from supportdesk.dynamic_fields.hooks import default_hooks
from supportdesk.dynamic_fields.registry import BackendRegistry, build_backend_registry

logger = logging.getLogger(__name__)

_REQUIRED_KEYS = ("id", "field_type", "object_type")


class DynamicFieldDispatcher:
    def __init__(
        self,
        *,
        backends: BackendRegistry,
        hooks: Mapping[str, ObjectTypeHook] | None = None,
    ) -> None:
        self.backends = backends
        self._hooks: dict[str, ObjectTypeHook] = dict(hooks or {})

    def register_hook(self, hook: ObjectTypeHook) -> None:
        self._hooks[hook.object_type] = hook

    # -----------------------
    # validation / resolution
    # -----------------------

    @staticmethod
    def _check_needed(**needed: Any) -> bool:
        for name, value in needed.items():
            if not value:
                logger.error("Need %s!", name)
                return False
        return True

    @staticmethod
    def _field(field: Any) -> FieldDefinition | None:
        if isinstance(field, Mapping):
            for key in _REQUIRED_KEYS:
                if not field.get(key):
                    logger.error("Need %s in field configuration!", key)
                    return None
            try:
                return FieldDefinition.model_validate(dict(field))
            except ValidationError:
                logger.error("The field configuration is invalid")
                return None

        if not isinstance(field, FieldDefinition):
            logger.error("The field configuration is invalid")
            return None

        missing = field.missing_keys()
        if missing:
            logger.error("Need %s in field configuration!", missing[0])
            return None
        return field

    def _backend(self, field: FieldDefinition) -> FieldBackend | None:
        try:
            return self.backends.get(field.field_type)
        except KeyError:
            logger.error("Backend %s is invalid!", field.field_type)
            return None

    def _resolve(self, field: Any) -> tuple[FieldDefinition, FieldBackend] | None:
        definition = self._field(field)
        if definition is None:
            return None
        backend = self._backend(definition)
        if backend is None:
            return None
        return definition, backend

    # -----------------------
    # rendering
    # -----------------------

    def edit_field_render(
        self,
        *,
        field: Any,
        value: Any = None,
        possible_values_filter: Mapping[str, str] | None = None,
        mandatory: bool = False,
    ) -> str | None:
        if not self._check_needed(field=field):
            return None
        resolved = self._resolve(field)
        if resolved is None:
            return None
        definition, backend = resolved

        if possible_values_filter is not None and (
            not isinstance(possible_values_filter, Mapping) or not possible_values_filter
        ):
            logger.error("The possible values filter is invalid")
            return None

        try:
            return backend.edit_field_render(
                field=definition,
                value=value,
                possible_values_filter=possible_values_filter,
                mandatory=mandatory,
            )
        except ValueError as e:
            logger.error("Can't render field %s: %s", definition.name, e)
            return None

    def display_field_render(self, *, field: Any, value: Any) -> str | None:
        if not self._check_needed(field=field):
            return None
        resolved = self._resolve(field)
        if resolved is None:
            return None
        definition, backend = resolved

        try:
            return backend.display_field_render(field=definition, value=value)
        except ValueError as e:
            logger.error("Can't render field %s: %s", definition.name, e)
            return None

    # -----------------------
    # values
    # -----------------------

    async def value_get(self, session: AsyncSession, *, field: Any, object_id: int) -> Any:
        if not self._check_needed(field=field, object_id=object_id):
            return None
        resolved = self._resolve(field)
        if resolved is None:
            return None
        definition, backend = resolved

        try:
            return await backend.value_get(session, field=definition, object_id=object_id)
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(
                "Could not read field %s for %s ID %s: %s",
                definition.name,
                definition.object_type,
                object_id,
                e,
            )
            return None

    async def value_set(
        self,
        session: AsyncSession,
        *,
        field: Any,
        object_id: int,
        value: Any,
        user_id: int,
    ) -> bool | None:
        if not self._check_needed(field=field, object_id=object_id, user_id=user_id):
            return None
        resolved = self._resolve(field)
        if resolved is None:
            return None
        definition, backend = resolved

        try:
            new_value = backend.coerce(definition, value)
        except ValueError as e:
            logger.error("Invalid value for field %s: %s", definition.name, e)
            return None

        old_value = await self.value_get(session, field=definition, object_id=object_id)

        # nothing to update
        if old_value is not None and new_value is not None and old_value == new_value:
            return True

        try:
            success = await backend.value_set(
                session,
                field=definition,
                object_id=object_id,
                value=new_value,
                user_id=user_id,
            )
        except (SQLAlchemyError, ValueError) as e:
            await session.rollback()
            logger.debug("value_set failed: %s", e)
            success = False

        if not success:
            logger.error(
                "Could not update field %s for %s ID %s!",
                definition.name,
                definition.object_type,
                object_id,
            )
            return None

        hook = self._hooks.get(definition.object_type)
        if hook is not None:
            try:
                await hook.on_value_updated(
                    session,
                    field=definition,
                    object_id=object_id,
                    value=new_value,
                    user_id=user_id,
                )
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(
                    "Field %s updated but %s hook failed for ID %s: %s",
                    definition.name,
                    definition.object_type,
                    object_id,
                    e,
                )

        return True

    async def handle_edit_request(
        self,
        session: AsyncSession,
        *,
        field: Any,
        object_id: int,
        params: Mapping[str, Any],
        user_id: int,
    ) -> bool | None:
        """Extract the submitted value of ``field`` from form ``params`` and store it."""
        if not self._check_needed(field=field, object_id=object_id, user_id=user_id):
            return None
        resolved = self._resolve(field)
        if resolved is None:
            return None
        definition, backend = resolved

        value = backend.edit_field_value_get(field=definition, params=params)
        return await self.value_set(
            session,
            field=definition,
            object_id=object_id,
            value=value,
            user_id=user_id,
        )

    # -----------------------
    # search
    # -----------------------

    def is_searchable(self, *, field: Any) -> bool | None:
        if not self._check_needed(field=field):
            return None
        resolved = self._resolve(field)
        if resolved is None:
            return None
        return resolved[1].is_searchable()

    def search_sql_get(
        self,
        *,
        field: Any,
        table_alias: Any,
        operator: str,
        search_term: Any,
    ) -> ColumnElement[bool] | None:
        """WHERE fragment for an already joined, aliased value table."""
        if not self._check_needed(field=field, operator=operator):
            return None
        if table_alias is None:
            logger.error("Need table_alias!")
            return None

        # empty searches are ignored
        if search_term is None or search_term == "":
            return None

        resolved = self._resolve(field)
        if resolved is None:
            return None
        definition, backend = resolved

        try:
            return backend.search_sql_get(
                field=definition,
                table_alias=table_alias,
                operator=operator,
                search_term=search_term,
            )
        except ValueError as e:
            logger.error("Can't search field %s: %s", definition.name, e)
            return None

    def search_sql_order_field_get(self, *, field: Any, table_alias: Any) -> ColumnElement[Any] | None:
        if not self._check_needed(field=field):
            return None
        if table_alias is None:
            logger.error("Need table_alias!")
            return None

        resolved = self._resolve(field)
        if resolved is None:
            return None
        definition, backend = resolved
        return backend.search_sql_order_field_get(field=definition, table_alias=table_alias)


def build_dispatcher(backend_config: Mapping[str, str] | None = None) -> DynamicFieldDispatcher:
    config = settings.dynamic_field_backends if backend_config is None else backend_config
    return DynamicFieldDispatcher(backends=build_backend_registry(config), hooks=default_hooks())
