from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from supportdesk.api.deps import get_loop_protection
from supportdesk.api.schemas_postmaster import LoopProtectionRequest, LoopProtectionResponse
from supportdesk.db.session import get_session
from supportdesk.postmaster.loop_protection import LoopProtection

router = APIRouter(prefix="/postmaster/loop-protection", tags=["postmaster"])


@router.post("/check", response_model=LoopProtectionResponse)
async def check(
    req: LoopProtectionRequest,
    session: AsyncSession = Depends(get_session),
    guard: LoopProtection = Depends(get_loop_protection),
):
    allowed = await guard.check(session, req.recipient)
    if allowed is None:
        raise HTTPException(status_code=400, detail="loop protection check failed")
    return LoopProtectionResponse(recipient=req.recipient, allowed=allowed)


@router.post("/record", response_model=LoopProtectionResponse)
async def record(
    req: LoopProtectionRequest,
    session: AsyncSession = Depends(get_session),
    guard: LoopProtection = Depends(get_loop_protection),
):
    recorded = await guard.record(session, req.recipient)
    if not recorded:
        raise HTTPException(status_code=400, detail="could not record sent email")
    return LoopProtectionResponse(recipient=req.recipient, recorded=True)


@router.post("/check-and-record", response_model=LoopProtectionResponse)
async def check_and_record(
    req: LoopProtectionRequest,
    session: AsyncSession = Depends(get_session),
    guard: LoopProtection = Depends(get_loop_protection),
):
    allowed = await guard.check_and_record(session, req.recipient)
    if allowed is None:
        raise HTTPException(status_code=400, detail="loop protection check failed")
    return LoopProtectionResponse(recipient=req.recipient, allowed=allowed, recorded=allowed)
