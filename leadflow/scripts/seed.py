"""
Creates demo facilities: one manager and a few sellers each, with the
sellers enabled in the facility rotation.

Safe to run repeatedly: existing users and pool entries are left alone.

    python -m leadflow.scripts.seed
"""

import asyncio
import logging
from typing import Dict, List, Tuple
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.domain.entities import SellerPoolEntry, User, UserRole
from leadflow.infrastructure.database import async_session, init_db
from leadflow.infrastructure.services.seller_pool_service import create_pool_entry

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


DEMO_FACILITIES: Dict[str, Dict[str, List[Tuple[str, str, str]]]] = {
    "Falkenberg": {
        "managers": [("anna.lind@leadflow.se", "Anna", "Lind")],
        "sellers": [
            ("erik.berg@leadflow.se", "Erik", "Berg"),
            ("sara.holm@leadflow.se", "Sara", "Holm"),
        ],
    },
    "Göteborg": {
        "managers": [("lars.ek@leadflow.se", "Lars", "Ek")],
        "sellers": [
            ("maria.sjo@leadflow.se", "Maria", "Sjö"),
            ("johan.strand@leadflow.se", "Johan", "Strand"),
            ("emma.dahl@leadflow.se", "Emma", "Dahl"),
        ],
    },
    "Trollhättan": {
        "managers": [("per.lund@leadflow.se", "Per", "Lund")],
        "sellers": [
            ("karin.fors@leadflow.se", "Karin", "Fors"),
        ],
    },
}


async def _get_or_create_user(
    session: AsyncSession,
    email: str,
    first_name: str,
    last_name: str,
    role: UserRole,
    facility: str,
) -> User:
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user:
        logger.info(f"👤 {email} already exists, skipping")
        return user

    user = User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        role=role.value,
        facility=facility,
        is_active=True,
    )
    session.add(user)
    await session.flush()
    logger.info(f"✅ Created {role.value} {email} ({facility})")
    return user


async def seed_demo_data(session: AsyncSession) -> int:
    """Returns the number of pool entries created."""
    created = 0

    for facility, people in DEMO_FACILITIES.items():
        logger.info(f"🏢 Seeding {facility}...")

        for email, first_name, last_name in people["managers"]:
            await _get_or_create_user(session, email, first_name, last_name, UserRole.MANAGER, facility)

        for email, first_name, last_name in people["sellers"]:
            seller = await _get_or_create_user(
                session, email, first_name, last_name, UserRole.SELLER, facility
            )
            existing = await session.execute(
                select(SellerPoolEntry.id).where(
                    SellerPoolEntry.facility == facility,
                    SellerPoolEntry.user_id == seller.id,
                )
            )
            if existing.scalar() is None:
                await create_pool_entry(session, facility, seller.id)
                created += 1

    await session.commit()
    return created


async def main():
    await init_db()
    async with async_session() as session:
        created = await seed_demo_data(session)
    logger.info(f"🌱 Seed finished ({created} pool entries created)")


if __name__ == "__main__":
    asyncio.run(main())
