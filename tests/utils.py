from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from leadflow.domain.entities import (
    AcceptStatus,
    Lead,
    LeadSource,
    LeadStatus,
    SellerPoolEntry,
    User,
    UserRole,
)

# Reference instant used by the time-based tests
T0 = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


def hours(value: float) -> timedelta:
    return timedelta(hours=value)


def create_test_engine():
    """In-memory SQLite shared by every session of one test."""
    return create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


def create_session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


# ==========================================
# DATA HELPERS
# ==========================================

async def create_user(
    db: AsyncSession,
    email: str,
    role: UserRole = UserRole.SELLER,
    facility: Optional[str] = "Falkenberg",
    **kwargs,
) -> User:
    first_name = kwargs.pop("first_name", email.split("@")[0].capitalize())
    user = User(
        email=email,
        first_name=first_name,
        role=role.value,
        facility=facility,
        **kwargs,
    )
    db.add(user)
    await db.flush()
    return user


async def create_pool(
    db: AsyncSession,
    facility: str,
    sellers: Iterable[User],
) -> List[SellerPoolEntry]:
    """Pool with the given sellers at positions 1..N, all enabled."""
    entries = []
    for position, seller in enumerate(sellers, start=1):
        entry = SellerPoolEntry(
            facility=facility,
            user_id=seller.id,
            is_enabled=True,
            sort_order=position,
        )
        db.add(entry)
        entries.append(entry)
    await db.flush()
    return entries


def lead_data(facility: Optional[str] = "Falkenberg", **overrides) -> dict:
    data = {
        "source": LeadSource.BLOCKET.value,
        "facility": facility,
        "contact_name": "Kim Nilsson",
        "contact_email": "kim@example.com",
        "vehicle_title": "Volvo V60 T6 2021",
    }
    data.update(overrides)
    return data


async def create_pending_lead(
    db: AsyncSession,
    seller: User,
    assigned_at: datetime = T0,
    facility: str = "Falkenberg",
    **overrides,
) -> Lead:
    """A lead already waiting for `seller` to accept it."""
    lead = Lead(
        **lead_data(facility),
        status=LeadStatus.PENDING_ACCEPTANCE.value,
        assigned_to_id=seller.id,
        assigned_at=assigned_at,
        accept_status=AcceptStatus.PENDING.value,
        assignment_version=1,
        created_at=assigned_at,
    )
    for key, value in overrides.items():
        setattr(lead, key, value)
    db.add(lead)
    await db.flush()
    return lead
