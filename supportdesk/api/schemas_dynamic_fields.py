from typing import Any, Dict

from pydantic import BaseModel, Field


class DynamicFieldCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200, pattern=r"^[A-Za-z0-9]+$")
    label: str
    field_type: str
    object_type: str
    mandatory: bool = False
    config: Dict[str, Any] = Field(default_factory=dict)


class DynamicFieldResponse(BaseModel):
    id: int
    name: str
    label: str
    field_type: str
    object_type: str
    mandatory: bool
    config: Dict[str, Any]


class FieldValueSetRequest(BaseModel):
    value: Any = None
    user_id: int


class FieldValueResponse(BaseModel):
    field_id: int
    object_id: int
    value: Any = None
    display: str | None = None


class RenderResponse(BaseModel):
    field_id: int
    html: str
