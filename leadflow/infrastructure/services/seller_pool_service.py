"""
SELLER POOL SERVICE
===================

Access to the per-facility rotation membership.

Responsible for:
- Listing the eligible (enabled) sellers of a facility in rotation order
- Enabling/disabling entries (with history)
- Reordering entries (bulk or by swapping with a neighbour)
"""

import logging
from typing import List, Optional, Sequence, Tuple
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.domain.entities import SellerPoolEntry, PoolStatusChange, User
from leadflow.domain.exceptions import PoolEntryNotFound, UserNotFound, InvalidPoolOrder

logger = logging.getLogger(__name__)


# ==========================================
# QUERIES
# ==========================================

async def get_seller_pools(
    db: AsyncSession,
    facility: Optional[str] = None,
) -> List[SellerPoolEntry]:
    """All pool entries (enabled or not), ordered by sort position."""
    query = select(SellerPoolEntry)
    if facility:
        query = query.where(SellerPoolEntry.facility == facility)

    result = await db.execute(
        query.order_by(SellerPoolEntry.facility, SellerPoolEntry.sort_order, SellerPoolEntry.id)
    )
    return list(result.scalars().all())


async def list_eligible_sellers(db: AsyncSession, facility: str) -> List[int]:
    """
    Seller ids taking part in the facility's rotation, in rotation order.

    An empty list is a normal state: the rotation then has nobody to pick.
    """
    result = await db.execute(
        select(SellerPoolEntry.user_id)
        .join(User, User.id == SellerPoolEntry.user_id)
        .where(
            SellerPoolEntry.facility == facility,
            SellerPoolEntry.is_enabled == True,
            User.is_active == True,
        )
        .order_by(SellerPoolEntry.sort_order, SellerPoolEntry.id)
    )
    return list(result.scalars().all())


async def get_pool_entry(db: AsyncSession, entry_id: int) -> SellerPoolEntry:
    entry = await db.get(SellerPoolEntry, entry_id)
    if entry is None:
        raise PoolEntryNotFound(entry_id)
    return entry


# ==========================================
# MUTATIONS
# ==========================================

async def create_pool_entry(
    db: AsyncSession,
    facility: str,
    user_id: int,
    is_enabled: bool = True,
    sort_order: Optional[int] = None,
) -> SellerPoolEntry:
    """
    Adds a seller to a facility's rotation.

    Without an explicit sort order the seller goes to the end of the rotation.
    """
    if await db.get(User, user_id) is None:
        raise UserNotFound(user_id)

    if sort_order is None:
        result = await db.execute(
            select(func.max(SellerPoolEntry.sort_order))
            .where(SellerPoolEntry.facility == facility)
        )
        current_max = result.scalar()
        sort_order = 1 if current_max is None else current_max + 1
    else:
        taken = await db.execute(
            select(SellerPoolEntry.id).where(
                SellerPoolEntry.facility == facility,
                SellerPoolEntry.sort_order == sort_order,
            )
        )
        if taken.scalar() is not None:
            raise InvalidPoolOrder(
                f"Sort position {sort_order} is already used in {facility}",
                facility=facility, sort_order=sort_order,
            )

    entry = SellerPoolEntry(
        facility=facility,
        user_id=user_id,
        is_enabled=is_enabled,
        sort_order=sort_order,
    )
    db.add(entry)
    try:
        await db.flush()
    except IntegrityError:
        # Concurrent add took the same position (or the seller is already in the pool)
        await db.rollback()
        raise InvalidPoolOrder(
            f"Seller {user_id} or position {sort_order} is already taken in {facility}",
            facility=facility, user_id=user_id, sort_order=sort_order,
        )

    logger.info(f"➕ Seller {user_id} added to {facility} rotation at position {sort_order}")
    return entry


async def set_pool_entry_enabled(
    db: AsyncSession,
    entry_id: int,
    enabled: bool,
    changed_by_id: Optional[int] = None,
) -> SellerPoolEntry:
    """Enables/disables a pool entry and records the toggle."""
    entry = await get_pool_entry(db, entry_id)

    if entry.is_enabled == enabled:
        return entry

    entry.is_enabled = enabled
    db.add(PoolStatusChange(
        seller_pool_id=entry.id,
        changed_by_id=changed_by_id,
        new_status=enabled,
    ))
    await db.flush()

    logger.info(
        f"🔁 Pool entry {entry.id} ({entry.facility}, seller {entry.user_id}) "
        f"{'enabled' if enabled else 'disabled'} by {changed_by_id}"
    )
    return entry


async def reorder_pool(
    db: AsyncSession,
    facility: str,
    updates: Sequence[Tuple[int, int]],
) -> List[SellerPoolEntry]:
    """
    Applies a set of (entry_id, sort_order) changes as one unit.

    Every entry must belong to `facility` and the resulting positions must
    stay unique inside the facility; otherwise nothing is changed.
    """
    entries = {entry.id: entry for entry in await get_seller_pools(db, facility)}

    new_positions = {entry_id: entry.sort_order for entry_id, entry in entries.items()}
    for entry_id, sort_order in updates:
        if entry_id not in entries:
            raise PoolEntryNotFound(entry_id)
        new_positions[entry_id] = sort_order

    if len(set(new_positions.values())) != len(new_positions):
        raise InvalidPoolOrder(
            f"Reorder would give two {facility} sellers the same position",
            facility=facility,
        )

    moved = {
        entry_id: sort_order
        for entry_id, sort_order in new_positions.items()
        if entries[entry_id].sort_order != sort_order
    }

    # Park moved entries on free negative positions first, so swaps never
    # collide with the (facility, sort_order) unique constraint mid-flush
    for entry_id in moved:
        entries[entry_id].sort_order = -entry_id
    await db.flush()

    for entry_id, sort_order in moved.items():
        entries[entry_id].sort_order = sort_order
    await db.flush()

    logger.info(f"↕️ {facility} rotation reordered ({len(updates)} entries)")
    return sorted(entries.values(), key=lambda e: (e.sort_order, e.id))


async def move_pool_entry(
    db: AsyncSession,
    entry_id: int,
    direction: str,
) -> List[SellerPoolEntry]:
    """
    Swaps an entry's position with its neighbour ("up" or "down").

    Moving past either end of the rotation leaves the order unchanged.
    """
    if direction not in ("up", "down"):
        raise InvalidPoolOrder(f"Unknown direction '{direction}'", direction=direction)

    entry = await get_pool_entry(db, entry_id)
    entries = await get_seller_pools(db, entry.facility)
    index = next(i for i, e in enumerate(entries) if e.id == entry.id)
    neighbour_index = index - 1 if direction == "up" else index + 1

    if neighbour_index < 0 or neighbour_index >= len(entries):
        return entries

    neighbour = entries[neighbour_index]
    return await reorder_pool(
        db,
        entry.facility,
        [(entry.id, neighbour.sort_order), (neighbour.id, entry.sort_order)],
    )
