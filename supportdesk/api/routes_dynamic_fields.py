from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from supportdesk.api.deps import get_dispatcher
from supportdesk.api.schemas_dynamic_fields import (
    DynamicFieldCreateRequest,
    DynamicFieldResponse,
    FieldValueResponse,
    FieldValueSetRequest,
    RenderResponse,
)
from supportdesk.db.session import get_session
from supportdesk.dynamic_fields.dispatcher import DynamicFieldDispatcher
from supportdesk.dynamic_fields.field import FieldDefinition
from supportdesk.dynamic_fields.field_service import add_field, get_field, list_fields

router = APIRouter(prefix="/dynamic-fields", tags=["dynamic-fields"])


async def _field_or_404(session: AsyncSession, field_id: int) -> FieldDefinition:
    field = await get_field(session, field_id=field_id)
    if field is None:
        raise HTTPException(status_code=404, detail="dynamic field not found")
    return field


@router.post("", response_model=DynamicFieldResponse, status_code=201)
async def create_dynamic_field(
    req: DynamicFieldCreateRequest,
    session: AsyncSession = Depends(get_session),
    dispatcher: DynamicFieldDispatcher = Depends(get_dispatcher),
):
    try:
        field = await add_field(session, backends=dispatcher.backends, **req.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return DynamicFieldResponse.model_validate(field, from_attributes=True)


@router.get("", response_model=list[DynamicFieldResponse])
async def get_dynamic_fields(object_type: str | None = None, session: AsyncSession = Depends(get_session)):
    fields = await list_fields(session, object_type=object_type)
    return [DynamicFieldResponse.model_validate(f, from_attributes=True) for f in fields]


@router.get("/{field_id}", response_model=DynamicFieldResponse)
async def get_dynamic_field(field_id: int, session: AsyncSession = Depends(get_session)):
    field = await _field_or_404(session, field_id)
    return DynamicFieldResponse.model_validate(field, from_attributes=True)


@router.get("/{field_id}/values/{object_id}", response_model=FieldValueResponse)
async def get_field_value(
    field_id: int,
    object_id: int,
    session: AsyncSession = Depends(get_session),
    dispatcher: DynamicFieldDispatcher = Depends(get_dispatcher),
):
    field = await _field_or_404(session, field_id)
    value = await dispatcher.value_get(session, field=field, object_id=object_id)
    return FieldValueResponse(
        field_id=field_id,
        object_id=object_id,
        value=value,
        display=dispatcher.display_field_render(field=field, value=value),
    )


@router.put("/{field_id}/values/{object_id}", response_model=FieldValueResponse)
async def set_field_value(
    field_id: int,
    object_id: int,
    req: FieldValueSetRequest,
    session: AsyncSession = Depends(get_session),
    dispatcher: DynamicFieldDispatcher = Depends(get_dispatcher),
):
    field = await _field_or_404(session, field_id)
    ok = await dispatcher.value_set(
        session,
        field=field,
        object_id=object_id,
        value=req.value,
        user_id=req.user_id,
    )
    if not ok:
        raise HTTPException(status_code=400, detail=f"could not update field {field.name}")

    value = await dispatcher.value_get(session, field=field, object_id=object_id)
    return FieldValueResponse(
        field_id=field_id,
        object_id=object_id,
        value=value,
        display=dispatcher.display_field_render(field=field, value=value),
    )


@router.get("/{field_id}/render/edit", response_model=RenderResponse)
async def render_edit(
    field_id: int,
    object_id: int | None = None,
    session: AsyncSession = Depends(get_session),
    dispatcher: DynamicFieldDispatcher = Depends(get_dispatcher),
):
    field = await _field_or_404(session, field_id)
    value = None
    if object_id:
        value = await dispatcher.value_get(session, field=field, object_id=object_id)

    html = dispatcher.edit_field_render(field=field, value=value, mandatory=field.mandatory)
    if html is None:
        raise HTTPException(status_code=400, detail=f"could not render field {field.name}")
    return RenderResponse(field_id=field_id, html=html)


@router.get("/{field_id}/render/display/{object_id}", response_model=RenderResponse)
async def render_display(
    field_id: int,
    object_id: int,
    session: AsyncSession = Depends(get_session),
    dispatcher: DynamicFieldDispatcher = Depends(get_dispatcher),
):
    field = await _field_or_404(session, field_id)
    value = await dispatcher.value_get(session, field=field, object_id=object_id)
    html = dispatcher.display_field_render(field=field, value=value)
    if html is None:
        raise HTTPException(status_code=400, detail=f"could not render field {field.name}")
    return RenderResponse(field_id=field_id, html=html)
