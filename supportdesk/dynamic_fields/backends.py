"""
Concrete dynamic field backends, one class per field type.

Every backend stores its value in exactly one typed column of
``dynamic_field_values`` and builds search predicates against an aliased
join of that table. Backends raise ``ValueError`` on bad input; the
dispatcher turns that into a logged, absent result.
"""

from __future__ import annotations

import operator as op
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping

from markupsafe import Markup, escape
from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from supportdesk.dynamic_fields.field import FieldDefinition
from supportdesk.dynamic_fields.store import read_value, write_value

_COMPARATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "Equals": op.eq,
    "GreaterThan": op.gt,
    "GreaterThanEquals": op.ge,
    "SmallerThan": op.lt,
    "SmallerThanEquals": op.le,
}

_ALL_COMPARATORS = frozenset(_COMPARATORS)

_TRUE_STRINGS = {"1", "on", "true", "checked", "yes"}
_FALSE_STRINGS = {"0", "", "off", "false", "no"}


LIKE_ESCAPE = "\\"


def _css_class(base: str, mandatory: bool) -> str:
    return f"{base} Validate_Required" if mandatory else base


def _like_pattern(term: Any) -> str:
    # literal % and _ stay literal; * is the only wildcard
    text = str(term)
    for ch in (LIKE_ESCAPE, "%", "_"):
        text = text.replace(ch, LIKE_ESCAPE + ch)
    return text.replace("*", "%")


# -----------------------
# per-type field configuration
# -----------------------


class TextConfig(BaseModel):
    default_value: str = ""


class TextAreaConfig(TextConfig):
    rows: int = Field(default=7, ge=1)
    cols: int = Field(default=42, ge=1)


class CheckboxConfig(BaseModel):
    default_value: int = Field(default=0, ge=0, le=1)


class DropdownConfig(BaseModel):
    possible_values: Dict[str, str] = Field(default_factory=dict)
    possible_none: bool = False
    default_value: str = ""


class DateTimeConfig(BaseModel):
    pass


class BaseBackend:
    field_type: str = ""
    column: str = "value_text"
    operators: frozenset[str] = frozenset({"Equals"})
    config_model: type[BaseModel] = TextConfig

    def parse_config(self, config: Mapping[str, Any]) -> Any:
        try:
            return self.config_model.model_validate(config or {})
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}" for err in e.errors()
            )
            raise ValueError(f"invalid {self.field_type} field configuration ({problems})") from e

    # -----------------------
    # values
    # -----------------------

    def coerce(self, field: FieldDefinition, value: Any) -> Any:
        if value is None:
            return None
        return str(value)

    async def value_get(self, session: AsyncSession, *, field: FieldDefinition, object_id: int) -> Any:
        return await read_value(session, field_id=field.id, object_id=object_id, column=self.column)

    async def value_set(
        self,
        session: AsyncSession,
        *,
        field: FieldDefinition,
        object_id: int,
        value: Any,
        user_id: int,
    ) -> bool:
        await write_value(
            session,
            field_id=field.id,
            object_id=object_id,
            column=self.column,
            value=self.coerce(field, value),
        )
        return True

    def edit_field_value_get(self, *, field: FieldDefinition, params: Mapping[str, Any]) -> Any:
        return params.get(field.html_name)

    # -----------------------
    # search
    # -----------------------

    def is_searchable(self) -> bool:
        return True

    def search_sql_get(
        self,
        *,
        field: FieldDefinition,
        table_alias: Any,
        operator: str,
        search_term: Any,
    ) -> ColumnElement[bool]:
        if operator not in self.operators:
            raise ValueError(f"unsupported search operator {operator} for field type {self.field_type}")

        column = getattr(table_alias, self.column)
        if operator == "Like":
            return column.ilike(_like_pattern(search_term), escape=LIKE_ESCAPE)

        return _COMPARATORS[operator](column, self.coerce(field, search_term))

    def search_sql_order_field_get(self, *, field: FieldDefinition, table_alias: Any) -> ColumnElement[Any]:
        return getattr(table_alias, self.column)

    # -----------------------
    # rendering
    # -----------------------

    def edit_field_render(
        self,
        *,
        field: FieldDefinition,
        value: Any = None,
        possible_values_filter: Mapping[str, str] | None = None,
        mandatory: bool = False,
    ) -> str:
        raise NotImplementedError

    def display_field_render(self, *, field: FieldDefinition, value: Any) -> str:
        if value is None:
            return ""
        return str(escape(value))


class TextBackend(BaseBackend):
    field_type = "Text"
    operators = frozenset({"Like"}) | _ALL_COMPARATORS

    def edit_field_render(self, *, field, value=None, possible_values_filter=None, mandatory=False) -> str:
        if value is None:
            value = self.parse_config(field.config).default_value
        html = Markup(
            '<input type="text" class="{cls}" id="{name}" name="{name}" title="{title}" value="{value}" />'
        ).format(
            cls=_css_class("DynamicFieldText W50pc", mandatory or field.mandatory),
            name=field.html_name,
            title=field.label,
            value=value,
        )
        return str(html)


class TextAreaBackend(BaseBackend):
    field_type = "TextArea"
    operators = frozenset({"Equals", "Like"})
    config_model = TextAreaConfig

    def edit_field_render(self, *, field, value=None, possible_values_filter=None, mandatory=False) -> str:
        cfg = self.parse_config(field.config)
        if value is None:
            value = cfg.default_value
        html = Markup(
            '<textarea class="{cls}" id="{name}" name="{name}" title="{title}" rows="{rows}" cols="{cols}">'
            "{value}</textarea>"
        ).format(
            cls=_css_class("DynamicFieldTextArea", mandatory or field.mandatory),
            name=field.html_name,
            title=field.label,
            rows=cfg.rows,
            cols=cfg.cols,
            value=value,
        )
        return str(html)

    def display_field_render(self, *, field, value) -> str:
        if value is None:
            return ""
        return str(escape(value)).replace("\n", "<br/>")


class CheckboxBackend(BaseBackend):
    field_type = "Checkbox"
    column = "value_int"
    operators = frozenset({"Equals"})
    config_model = CheckboxConfig

    def coerce(self, field: FieldDefinition, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            if value not in (0, 1):
                raise ValueError(f"checkbox value must be 0 or 1, got {value}")
            return value
        text = str(value).strip().lower()
        if text in _TRUE_STRINGS:
            return 1
        if text in _FALSE_STRINGS:
            return 0
        raise ValueError(f"invalid checkbox value: {value!r}")

    def edit_field_value_get(self, *, field, params) -> Any:
        # unchecked boxes are not submitted at all
        return 1 if params.get(field.html_name) else 0

    def edit_field_render(self, *, field, value=None, possible_values_filter=None, mandatory=False) -> str:
        if value is None:
            value = self.parse_config(field.config).default_value
        checked = Markup(' checked="checked"') if self.coerce(field, value) else ""
        html = Markup(
            '<input type="checkbox" class="{cls}" id="{name}" name="{name}" title="{title}" value="1"{checked} />'
        ).format(
            cls=_css_class("DynamicFieldCheckbox", mandatory or field.mandatory),
            name=field.html_name,
            title=field.label,
            checked=checked,
        )
        return str(html)

    def display_field_render(self, *, field, value) -> str:
        if value is None:
            return ""
        return "Checked" if self.coerce(field, value) else "Unchecked"


class DropdownBackend(BaseBackend):
    field_type = "Dropdown"
    operators = frozenset({"Equals", "Like"})
    config_model = DropdownConfig

    def coerce(self, field: FieldDefinition, value: Any) -> Any:
        if value is None:
            return None
        cfg = self.parse_config(field.config)
        key = str(value)
        if key == "":
            if cfg.possible_none:
                return key
            raise ValueError(f"field {field.name} does not allow an empty value")
        if key not in cfg.possible_values:
            raise ValueError(f"{key!r} is not a possible value of field {field.name}")
        return key

    def search_sql_get(self, *, field, table_alias, operator, search_term):
        # search terms are matched as keys, not validated against the configured values
        if operator == "Equals":
            return getattr(table_alias, self.column) == str(search_term)
        return super().search_sql_get(
            field=field, table_alias=table_alias, operator=operator, search_term=search_term
        )

    def edit_field_render(self, *, field, value=None, possible_values_filter=None, mandatory=False) -> str:
        cfg = self.parse_config(field.config)
        options = possible_values_filter or cfg.possible_values
        if value is None:
            value = cfg.default_value
        selected = str(value)

        parts = []
        if cfg.possible_none:
            parts.append(Markup('<option value="">-</option>'))
        for key, label in options.items():
            attr = Markup(' selected="selected"') if str(key) == selected else ""
            parts.append(Markup('<option value="{key}"{attr}>{label}</option>').format(key=key, attr=attr, label=label))

        html = Markup('<select class="{cls}" id="{name}" name="{name}" title="{title}">{options}</select>').format(
            cls=_css_class("DynamicFieldDropdown", mandatory or field.mandatory),
            name=field.html_name,
            title=field.label,
            options=Markup("").join(parts),
        )
        return str(html)

    def display_field_render(self, *, field, value) -> str:
        if value is None:
            return ""
        label = self.parse_config(field.config).possible_values.get(str(value), value)
        return str(escape(label))


class DateTimeBackend(BaseBackend):
    field_type = "DateTime"
    column = "value_date"
    operators = _ALL_COMPARATORS
    config_model = DateTimeConfig

    def coerce(self, field: FieldDefinition, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, datetime):
            parsed = value
        else:
            text = str(value).strip()
            if not text:
                return None
            parsed = datetime.fromisoformat(text)

        # stored naive, in UTC
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed.replace(microsecond=0)

    def edit_field_render(self, *, field, value=None, possible_values_filter=None, mandatory=False) -> str:
        stamp = self.coerce(field, value)
        html = Markup(
            '<input type="datetime-local" class="{cls}" id="{name}" name="{name}" title="{title}" value="{value}" />'
        ).format(
            cls=_css_class("DynamicFieldDateTime", mandatory or field.mandatory),
            name=field.html_name,
            title=field.label,
            value=stamp.strftime("%Y-%m-%dT%H:%M") if stamp else "",
        )
        return str(html)

    def display_field_render(self, *, field, value) -> str:
        stamp = self.coerce(field, value)
        if stamp is None:
            return ""
        return stamp.strftime("%Y-%m-%d %H:%M:%S")
