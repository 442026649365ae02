"""
ROUTES: SELLER POOLS
====================

Per-facility rotation membership and order.
Only managers can change the pools.
"""

from datetime import datetime
from typing import Optional, List, Literal
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.infrastructure.database import get_db
from leadflow.domain.entities import PoolStatusChange, User
from leadflow.api.dependencies import get_current_user, require_manager
from leadflow.infrastructure.services.seller_pool_service import (
    create_pool_entry,
    get_pool_entry,
    get_seller_pools,
    move_pool_entry,
    reorder_pool,
    set_pool_entry_enabled,
)


router = APIRouter(prefix="/seller-pools", tags=["Seller pools"])


# ==========================================
# SCHEMAS (Pydantic)
# ==========================================

class PoolEntryCreate(BaseModel):
    facility: str = Field(..., min_length=1, max_length=100)
    user_id: int
    is_enabled: bool = True
    sort_order: Optional[int] = Field(None, ge=0)


class PoolEntryUpdate(BaseModel):
    is_enabled: bool


class PoolOrderItem(BaseModel):
    id: int
    sort_order: int = Field(..., ge=0)


class PoolReorderRequest(BaseModel):
    facility: str
    updates: List[PoolOrderItem] = Field(..., min_length=1)


class PoolMoveRequest(BaseModel):
    direction: Literal["up", "down"]


class PoolEntryResponse(BaseModel):
    id: int
    user_id: int
    facility: str
    is_enabled: bool
    sort_order: int

    class Config:
        from_attributes = True


class PoolStatusChangeResponse(BaseModel):
    id: int
    seller_pool_id: int
    changed_by_id: Optional[int]
    new_status: bool
    created_at: datetime

    class Config:
        from_attributes = True


# ==========================================
# ROUTES
# ==========================================

@router.get("", response_model=List[PoolEntryResponse])
async def list_pools(
    facility: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_seller_pools(db, facility)


@router.post("", response_model=PoolEntryResponse, status_code=status.HTTP_201_CREATED)
async def add_pool_entry(
    payload: PoolEntryCreate,
    manager: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    entry = await create_pool_entry(
        db,
        facility=payload.facility,
        user_id=payload.user_id,
        is_enabled=payload.is_enabled,
        sort_order=payload.sort_order,
    )
    await db.commit()
    return entry


@router.patch("/{entry_id}", response_model=PoolEntryResponse)
async def update_pool_entry(
    entry_id: int,
    payload: PoolEntryUpdate,
    manager: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    """Enables/disables a seller in the rotation."""
    entry = await set_pool_entry_enabled(db, entry_id, payload.is_enabled, changed_by_id=manager.id)
    await db.commit()
    return entry


@router.get("/{entry_id}/history", response_model=List[PoolStatusChangeResponse])
async def pool_entry_history(
    entry_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_pool_entry(db, entry_id)
    result = await db.execute(
        select(PoolStatusChange)
        .where(PoolStatusChange.seller_pool_id == entry_id)
        .order_by(PoolStatusChange.created_at.desc(), PoolStatusChange.id.desc())
    )
    return result.scalars().all()


@router.post("/reorder", response_model=List[PoolEntryResponse])
async def reorder(
    payload: PoolReorderRequest,
    manager: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    entries = await reorder_pool(
        db,
        payload.facility,
        [(item.id, item.sort_order) for item in payload.updates],
    )
    await db.commit()
    return entries


@router.post("/{entry_id}/move", response_model=List[PoolEntryResponse])
async def move(
    entry_id: int,
    payload: PoolMoveRequest,
    manager: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    entries = await move_pool_entry(db, entry_id, payload.direction)
    await db.commit()
    return entries
