from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class FieldDefinition(BaseModel):
    """Complete configuration of one dynamic field, as loaded for a request."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    name: str
    label: str = ""
    field_type: str
    object_type: str
    mandatory: bool = False
    config: Dict[str, Any] = Field(default_factory=dict)

    @property
    def html_name(self) -> str:
        return f"DynamicField_{self.name}"

    def missing_keys(self) -> list[str]:
        return [k for k in ("id", "field_type", "object_type") if not getattr(self, k)]
