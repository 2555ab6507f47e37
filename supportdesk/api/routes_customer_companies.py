from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from supportdesk.api.schemas_customer_companies import CustomerCompanyWriteRequest
from supportdesk.customer_company.service import customer_company_service
from supportdesk.db.session import get_session

router = APIRouter(prefix="/customer-companies", tags=["customer-companies"])


@router.post("", status_code=201)
async def create_customer_company(
    req: CustomerCompanyWriteRequest, session: AsyncSession = Depends(get_session)
) -> Dict[str, Any]:
    customer_id = await customer_company_service.add(session, data=req.attributes, user_id=req.user_id)
    if not customer_id:
        raise HTTPException(status_code=400, detail="could not add customer company")
    return await customer_company_service.get(session, customer_id=customer_id)


@router.get("")
async def list_customer_companies(
    search: str | None = None,
    valid: bool = True,
    limit: int | None = None,
    session: AsyncSession = Depends(get_session),
) -> Dict[str, str]:
    return await customer_company_service.list(session, search=search, valid=valid, limit=limit)


@router.get("/{customer_id}")
async def get_customer_company(customer_id: str, session: AsyncSession = Depends(get_session)) -> Dict[str, Any]:
    company = await customer_company_service.get(session, customer_id=customer_id)
    if not company:
        raise HTTPException(status_code=404, detail="customer company not found")
    return company


@router.put("/{customer_id}")
async def update_customer_company(
    customer_id: str, req: CustomerCompanyWriteRequest, session: AsyncSession = Depends(get_session)
) -> Dict[str, Any]:
    data = {"CustomerID": customer_id, **req.attributes, "CustomerCompanyID": customer_id}
    ok = await customer_company_service.update(session, data=data, user_id=req.user_id)
    if not ok:
        raise HTTPException(status_code=400, detail="could not update customer company")
    return await customer_company_service.get(session, customer_id=data["CustomerID"])
