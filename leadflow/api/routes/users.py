"""
ROUTES: USERS
=============

Managers and sellers with their acceptance counters.
Reporting only, managers only.
"""

from typing import Optional, List
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.infrastructure.database import get_db
from leadflow.domain.entities import User, UserRole
from leadflow.api.dependencies import require_manager


router = APIRouter(prefix="/users", tags=["Users"])


# ==========================================
# SCHEMAS (Pydantic)
# ==========================================

class UserResponse(BaseModel):
    id: int
    email: str
    full_name: str
    role: str
    facility: Optional[str]
    is_active: bool
    email_on_lead_assignment: bool
    leads_accepted_count: int
    leads_declined_count: int
    leads_reassigned_count: int
    leads_timed_out_count: int

    class Config:
        from_attributes = True


# ==========================================
# ROUTES
# ==========================================

@router.get("/stats/summary")
async def acceptance_stats(
    facility: Optional[str] = Query(None),
    manager: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    """
    Acceptance totals over the sellers (optionally of one facility).
    """
    query = select(
        func.count(User.id),
        func.sum(User.leads_accepted_count),
        func.sum(User.leads_declined_count),
        func.sum(User.leads_reassigned_count),
        func.sum(User.leads_timed_out_count),
    ).where(User.role == UserRole.SELLER.value)

    if facility:
        query = query.where(User.facility == facility)

    sellers, accepted, declined, reassigned, timed_out = (await db.execute(query)).one()
    accepted = accepted or 0
    declined = declined or 0
    timed_out = timed_out or 0
    answered = accepted + declined + timed_out

    return {
        "facility": facility,
        "total_sellers": sellers or 0,
        "accepted": accepted,
        "declined": declined,
        "reassigned": reassigned or 0,
        "timed_out": timed_out,
        "acceptance_rate": round(accepted / answered * 100, 1) if answered > 0 else 0,
    }


@router.get("", response_model=List[UserResponse])
async def list_users(
    facility: Optional[str] = Query(None),
    active_only: bool = Query(False),
    manager: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    query = select(User)

    if facility:
        query = query.where(User.facility == facility)

    if active_only:
        query = query.where(User.is_active == True)

    result = await db.execute(query.order_by(User.facility, User.id))
    return result.scalars().all()
