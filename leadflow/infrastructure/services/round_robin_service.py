"""
ROUND ROBIN SERVICE
===================

Decides which seller of a facility receives the next lead.

The rotation is recomputed on every call from the facility's lead history
(see `leadflow.domain.services.rotation`), so there is no shared pointer to
keep consistent between the API and the acceptance monitor.
"""

import logging
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.domain.entities import Lead
from leadflow.domain.services.rotation import pick_next_seller
from leadflow.infrastructure.services.seller_pool_service import list_eligible_sellers

logger = logging.getLogger(__name__)


async def get_last_assigned_seller_id(db: AsyncSession, facility: str) -> Optional[int]:
    """
    Assignee of the most recently created facility lead that has one.

    Considers every lead of the facility, not only those pending acceptance.
    """
    result = await db.execute(
        select(Lead.assigned_to_id)
        .where(
            Lead.facility == facility,
            Lead.assigned_to_id.is_not(None),
            Lead.is_deleted == False,
        )
        .order_by(Lead.created_at.desc(), Lead.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def select_next_seller(db: AsyncSession, facility: str) -> Optional[int]:
    """Next seller in the facility rotation, or None if nobody is eligible."""
    return await select_next_seller_excluding(db, facility, None)


async def select_next_seller_excluding(
    db: AsyncSession,
    facility: str,
    exclude_seller_id: Optional[int],
) -> Optional[int]:
    """
    Next seller in the rotation, never returning `exclude_seller_id`.

    Used for decline/timeout reassignment: with two or more eligible sellers
    this always yields someone else; a one-seller pool made of the excluded
    seller yields None.
    """
    eligible = await list_eligible_sellers(db, facility)
    if not eligible:
        logger.info(f"📭 No eligible sellers in {facility}")
        return None

    last_seller_id = await get_last_assigned_seller_id(db, facility)
    seller_id = pick_next_seller(eligible, last_seller_id, exclude_seller_id)

    logger.debug(
        f"🎯 Rotation {facility}: eligible={eligible} last={last_seller_id} "
        f"exclude={exclude_seller_id} -> {seller_id}"
    )
    return seller_id
