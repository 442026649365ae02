"""
NOTIFICATION SERVICE
====================

Outbound notifications of the acceptance flow:
1. Lead assigned (to the new assignee, when opted in)
2. First / final acceptance reminder (to the assignee)
3. Timeout notice (to the facility manager)

Delivery is best-effort: failures are logged and recorded in
`email_notification_logs`, never raised to the caller, and never undo the
state transition that triggered them.
"""

import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.domain.entities import EmailNotificationLog, Lead, NotificationKind, User
from leadflow.domain.exceptions import NotificationFailure
from leadflow.infrastructure.services import email_service

logger = logging.getLogger(__name__)


# =============================================================================
# NOTIFIER INTERFACE
# =============================================================================

class AcceptanceNotifier(ABC):
    """
    Delivery channel for acceptance notifications.

    Every method returns the subject that was delivered and raises on failure.
    """

    @abstractmethod
    async def send_lead_assigned(self, seller: User, lead: Lead) -> str:
        pass

    @abstractmethod
    async def send_reminder(self, seller: User, lead: Lead, hours_remaining: float) -> str:
        pass

    @abstractmethod
    async def send_manager_timeout_notice(self, manager: User, seller: User, lead: Lead) -> str:
        pass


class EmailAcceptanceNotifier(AcceptanceNotifier):
    """Sends the notifications as emails through Resend."""

    async def _send(self, to: str, subject: str, html: str) -> str:
        try:
            await email_service.send_email(to, subject, html)
        except Exception as e:
            raise NotificationFailure(f"Email to {to} failed: {e}", email_to=to) from e
        return subject

    async def send_lead_assigned(self, seller: User, lead: Lead) -> str:
        subject, html = email_service.render_lead_assigned(seller, lead)
        return await self._send(seller.email, subject, html)

    async def send_reminder(self, seller: User, lead: Lead, hours_remaining: float) -> str:
        subject, html = email_service.render_acceptance_reminder(seller, lead, hours_remaining)
        return await self._send(seller.email, subject, html)

    async def send_manager_timeout_notice(self, manager: User, seller: User, lead: Lead) -> str:
        subject, html = email_service.render_manager_timeout(manager, seller, lead)
        return await self._send(manager.email, subject, html)


# =============================================================================
# DISPATCH (best-effort + delivery log)
# =============================================================================

class NotificationService:
    """Wraps a notifier so that no delivery error ever escapes."""

    def __init__(self, db: AsyncSession, notifier: AcceptanceNotifier):
        self.db = db
        self.notifier = notifier

    async def _deliver(
        self,
        kind: NotificationKind,
        recipient: User,
        lead: Lead,
        send: Callable[[], Awaitable[str]],
    ) -> bool:
        error: Optional[str] = None
        try:
            subject = await send()
        except Exception as e:
            subject = kind.value
            error = str(e)
            logger.error(
                f"❌ Notification '{kind.value}' failed for lead {lead.id} (user {recipient.id}): {e}",
                exc_info=True,
                extra={"context": {"lead_id": lead.id, "user_id": recipient.id, "kind": kind.value}},
            )

        self.db.add(EmailNotificationLog(
            user_id=recipient.id,
            lead_id=lead.id,
            kind=kind.value,
            email_to=recipient.email,
            subject=subject,
            success=error is None,
            error_message=error,
        ))
        await self.db.flush()

        if error is None:
            logger.info(f"✅ Notification '{kind.value}' sent for lead {lead.id} to user {recipient.id}")
        return error is None

    async def lead_assigned(self, seller: User, lead: Lead) -> bool:
        if not seller.email_on_lead_assignment:
            logger.debug(f"Seller {seller.id} opted out of assignment emails")
            return False
        return await self._deliver(
            NotificationKind.LEAD_ASSIGNED, seller, lead,
            lambda: self.notifier.send_lead_assigned(seller, lead),
        )

    async def reminder(
        self,
        kind: NotificationKind,
        seller: User,
        lead: Lead,
        hours_remaining: float,
    ) -> bool:
        return await self._deliver(
            kind, seller, lead,
            lambda: self.notifier.send_reminder(seller, lead, hours_remaining),
        )

    async def manager_timeout(self, manager: User, seller: User, lead: Lead) -> bool:
        return await self._deliver(
            NotificationKind.MANAGER_TIMEOUT, manager, lead,
            lambda: self.notifier.send_manager_timeout_notice(manager, seller, lead),
        )


def get_notifier() -> AcceptanceNotifier:
    return EmailAcceptanceNotifier()
