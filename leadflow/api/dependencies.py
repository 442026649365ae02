"""
DEPENDENCIES
============

Functions injected into the routes.

The acting user comes from the `X-User-Id` header; authenticating that
header (gateway, session, token) happens in front of this service.
"""

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.domain.entities import User
from leadflow.infrastructure.database import get_db
from leadflow.infrastructure.jobs.acceptance_job import AcceptanceMonitor, get_acceptance_monitor
from leadflow.infrastructure.services.assignment_service import LeadAssignmentService
from leadflow.infrastructure.services.notification_service import AcceptanceNotifier, get_notifier


async def get_current_user(
    x_user_id: int = Header(..., alias="X-User-Id"),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Returns the acting user.

    Usage in routes:
        @router.post("/leads/{lead_id}/accept")
        async def accept(user: User = Depends(get_current_user)):
            ...
    """
    user = await db.get(User, x_user_id)

    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown or inactive user",
        )

    return user


async def require_manager(user: User = Depends(get_current_user)) -> User:
    """Only facility managers get through."""
    if not user.is_manager:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Manager role required",
        )
    return user


def get_acceptance_notifier() -> AcceptanceNotifier:
    return get_notifier()


async def get_assignment_service(
    db: AsyncSession = Depends(get_db),
    notifier: AcceptanceNotifier = Depends(get_acceptance_notifier),
) -> LeadAssignmentService:
    return LeadAssignmentService(db, notifier)


def get_monitor() -> AcceptanceMonitor:
    return get_acceptance_monitor()
