"""
LEAD ASSIGNMENT SERVICE
=======================

State machine of a lead's acceptance cycle.

    UNASSIGNED --assign--> PENDING_ACCEPTANCE --accept--> (working lead)
                                  |
                      decline / timeout
                                  |
                     reassign_or_release
                       /               \\
      PENDING_ACCEPTANCE (next seller)   UNASSIGNED (nobody eligible)

CONCURRENCY:
Every transition is a single conditional UPDATE keyed on the lead's
`assignment_version` (and on the expected status/assignee for
accept/decline/timeout). If a concurrent request or the acceptance
monitor already moved the lead on, the UPDATE matches no row and the
loser gets `NotPending` without writing anything.

NOTIFICATIONS:
Sent only after the transition is committed, and never raised.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.domain.entities import (
    AcceptStatus,
    AuditAction,
    AuditLog,
    CLEARED_ESCALATION_MARKERS,
    Lead,
    LeadStatus,
    NotificationKind,
    User,
    UserRole,
    utc_now,
)
from leadflow.domain.exceptions import (
    LeadNotFound,
    MissingFacility,
    NotAssignee,
    NotPending,
    PermissionDenied,
    UserNotFound,
)
from leadflow.infrastructure.services.notification_service import (
    AcceptanceNotifier,
    NotificationService,
    get_notifier,
)
from leadflow.infrastructure.services.round_robin_service import (
    select_next_seller,
    select_next_seller_excluding,
)

logger = logging.getLogger(__name__)


# ==========================================
# RESULTS
# ==========================================

class AssignmentOutcome(str, Enum):
    ASSIGNED = "assigned"
    REASSIGNED = "reassigned"
    RELEASED = "released"                      # back to the unassigned pool
    NO_ELIGIBLE_SELLER = "no_eligible_seller"  # nothing changed


@dataclass
class AssignmentResult:
    """
    Outcome of an (re)assignment attempt.

    RELEASED and NO_ELIGIBLE_SELLER are valid outcomes, not failures: the
    caller can tell the user "no seller currently available".
    """
    lead: Lead
    outcome: AssignmentOutcome
    seller_id: Optional[int] = None
    previous_seller_id: Optional[int] = None

    @property
    def seller_found(self) -> bool:
        return self.seller_id is not None


@dataclass
class TimeoutEscalation:
    result: AssignmentResult
    timed_out_seller_id: int
    manager_id: Optional[int] = None
    manager_notified: bool = False


# ==========================================
# SERVICE
# ==========================================

class LeadAssignmentService:
    """
    Owns the assignment fields of leads.

    Public transitions (`auto_assign`, `accept`, `decline`,
    `escalate_timeout`, `manual_reassign`, `create_lead`) run in their own
    transaction and commit. `assign_lead`, `reassign_or_release` and
    `release_lead` are building blocks and leave committing to the caller.
    """

    def __init__(self, db: AsyncSession, notifier: Optional[AcceptanceNotifier] = None):
        self.db = db
        self.notifications = NotificationService(db, notifier or get_notifier())

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_lead(self, lead_id: int) -> Lead:
        result = await self.db.execute(
            select(Lead)
            .where(Lead.id == lead_id, Lead.is_deleted == False)
            .execution_options(populate_existing=True)
        )
        lead = result.scalar_one_or_none()
        if lead is None:
            raise LeadNotFound(lead_id)
        return lead

    async def get_lead_for_viewer(self, lead_id: int, viewer: User) -> Lead:
        """Managers see every lead, sellers only the ones assigned to them."""
        lead = await self.get_lead(lead_id)
        if not viewer.is_manager and lead.assigned_to_id != viewer.id:
            raise PermissionDenied(
                f"User {viewer.id} may not view lead {lead.id}",
                lead_id=lead.id, user_id=viewer.id,
            )
        return lead

    async def get_user(self, user_id: int) -> User:
        user = await self.db.get(User, user_id, populate_existing=True)
        if user is None:
            raise UserNotFound(user_id)
        return user

    async def get_manager_for_facility(self, facility: str) -> Optional[User]:
        result = await self.db.execute(
            select(User)
            .where(
                User.role == UserRole.MANAGER.value,
                User.facility == facility,
                User.is_active == True,
            )
            .order_by(User.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_pending_acceptance(self, assignee_id: Optional[int] = None) -> List[Lead]:
        query = select(Lead).where(
            Lead.status == LeadStatus.PENDING_ACCEPTANCE.value,
            Lead.assigned_to_id.is_not(None),
            Lead.assigned_at.is_not(None),
            Lead.is_deleted == False,
        )
        if assignee_id is not None:
            query = query.where(Lead.assigned_to_id == assignee_id)

        result = await self.db.execute(query.order_by(Lead.assigned_at, Lead.id))
        return list(result.scalars().all())

    async def get_lead_activity(self, lead_id: int, viewer: Optional[User] = None) -> List[AuditLog]:
        if viewer is None:
            await self.get_lead(lead_id)
        else:
            await self.get_lead_for_viewer(lead_id, viewer)

        result = await self.db.execute(
            select(AuditLog)
            .where(AuditLog.lead_id == lead_id)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Low-level writes
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _transaction(self):
        try:
            yield
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

    async def _transition(
        self,
        lead: Lead,
        values: Dict[str, Any],
        expect_pending: bool = True,
        *conditions,
    ) -> None:
        """
        Conditional read-modify-write of one lead's assignment fields.

        Raises NotPending when the lead moved on since it was read.
        """
        query = update(Lead).where(
            Lead.id == lead.id,
            Lead.assignment_version == lead.assignment_version,
            *conditions,
        )
        if expect_pending:
            query = query.where(
                Lead.status == LeadStatus.PENDING_ACCEPTANCE.value,
                Lead.assigned_to_id == lead.assigned_to_id,
            )

        result = await self.db.execute(
            query.values(**values).execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotPending(lead.id, lead.status)

        await self.db.refresh(lead)

    async def _increment_counter(self, user_id: int, column: str) -> None:
        counter = getattr(User, column)
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values({column: counter + 1})
            .execution_options(synchronize_session=False)
        )

    async def _audit(
        self,
        lead: Lead,
        action: AuditAction,
        user_id: Optional[int],
        from_value: Optional[str] = None,
        to_value: Optional[str] = None,
    ) -> None:
        self.db.add(AuditLog(
            lead_id=lead.id,
            user_id=user_id,
            action=action.value,
            from_value=from_value,
            to_value=to_value,
        ))
        await self.db.flush()

    async def _display_name(self, user_id: Optional[int]) -> Optional[str]:
        if user_id is None:
            return None
        user = await self.db.get(User, user_id)
        return user.full_name if user else str(user_id)

    async def _notify_assigned(self, lead: Lead) -> None:
        """Best-effort "new lead" email to the current assignee."""
        if lead.assigned_to_id is None:
            return
        try:
            seller = await self.get_user(lead.assigned_to_id)
            await self.notifications.lead_assigned(seller, lead)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"❌ Could not notify assignee of lead {lead.id}: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Building blocks (no commit)
    # ------------------------------------------------------------------

    async def assign_lead(
        self,
        lead: Lead,
        seller_id: int,
        now: Optional[datetime] = None,
        acting_user_id: Optional[int] = None,
        audit: bool = True,
    ) -> Lead:
        """
        Starts a new acceptance cycle for `seller_id`.

        Clears the escalation markers and bumps the cycle version.
        """
        now = now or utc_now()
        seller = await self.get_user(seller_id)

        await self._transition(
            lead,
            {
                "assigned_to_id": seller.id,
                "assigned_at": now,
                "status": LeadStatus.PENDING_ACCEPTANCE.value,
                "accept_status": AcceptStatus.PENDING.value,
                "accepted_at": None,
                "declined_at": None,
                "decline_reason": None,
                "assignment_version": Lead.assignment_version + 1,
                **CLEARED_ESCALATION_MARKERS,
            },
            False,
        )

        if audit:
            await self._audit(lead, AuditAction.ASSIGNED, acting_user_id, None, seller.full_name)

        logger.info(f"📥 Lead {lead.id} assigned to seller {seller.id} (cycle {lead.assignment_version})")
        return lead

    async def release_lead(
        self,
        lead: Lead,
        timeout_notified_at: Optional[datetime] = None,
    ) -> Lead:
        """Returns the lead to the unassigned pool."""
        await self._transition(
            lead,
            {
                "status": LeadStatus.NEW.value,
                "assigned_to_id": None,
                "assigned_at": None,
                "accept_status": None,
                **CLEARED_ESCALATION_MARKERS,
                "timeout_notified_at": timeout_notified_at,
            },
            False,
        )
        logger.info(f"📭 Lead {lead.id} released to the unassigned pool")
        return lead

    async def reassign_or_release(
        self,
        lead: Lead,
        from_seller_id: int,
        now: Optional[datetime] = None,
        action: Optional[AuditAction] = None,
        timeout_notified_at: Optional[datetime] = None,
    ) -> AssignmentResult:
        """
        Hands the lead to the next seller other than `from_seller_id`, or
        releases it when nobody else is eligible.
        """
        now = now or utc_now()
        candidate_id = None
        if lead.facility:
            candidate_id = await select_next_seller_excluding(self.db, lead.facility, from_seller_id)

        from_name = await self._display_name(from_seller_id)

        if candidate_id is not None:
            await self._increment_counter(from_seller_id, "leads_reassigned_count")
            await self.assign_lead(lead, candidate_id, now=now, audit=False)
            await self._audit(
                lead,
                action or AuditAction.REASSIGNED,
                from_seller_id,
                from_name,
                await self._display_name(candidate_id),
            )
            logger.info(f"🔄 Lead {lead.id} reassigned from seller {from_seller_id} to {candidate_id}")
            return AssignmentResult(lead, AssignmentOutcome.REASSIGNED, candidate_id, from_seller_id)

        await self.release_lead(lead, timeout_notified_at=timeout_notified_at)
        await self._audit(lead, action or AuditAction.RELEASED, from_seller_id, from_name, None)
        logger.info(f"ℹ️ No other eligible seller for lead {lead.id} in {lead.facility}, released")
        return AssignmentResult(lead, AssignmentOutcome.RELEASED, None, from_seller_id)

    # ------------------------------------------------------------------
    # Public transitions
    # ------------------------------------------------------------------

    async def create_lead(self, data: Dict[str, Any], now: Optional[datetime] = None) -> AssignmentResult:
        """Creates a lead and, when it has a facility, runs the rotation on it."""
        now = now or utc_now()

        async with self._transaction():
            lead = Lead(**data, status=LeadStatus.NEW.value, created_at=now)
            self.db.add(lead)
            await self.db.flush()
            logger.info(f"🆕 Lead {lead.id} created ({lead.source}, {lead.facility})")

            seller_id = await select_next_seller(self.db, lead.facility) if lead.facility else None
            if seller_id is not None:
                await self.assign_lead(lead, seller_id, now=now)

        if seller_id is None:
            return AssignmentResult(lead, AssignmentOutcome.NO_ELIGIBLE_SELLER)

        await self._notify_assigned(lead)
        return AssignmentResult(lead, AssignmentOutcome.ASSIGNED, seller_id)

    async def auto_assign(
        self,
        lead_id: int,
        acting_user_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> AssignmentResult:
        """Assigns the lead to the next seller of its facility's rotation."""
        lead = await self.get_lead(lead_id)
        if not lead.facility:
            raise MissingFacility(lead.id)

        previous_seller_id = lead.assigned_to_id

        async with self._transaction():
            seller_id = await select_next_seller(self.db, lead.facility)
            if seller_id is not None:
                await self.assign_lead(lead, seller_id, now=now, acting_user_id=acting_user_id)

        if seller_id is None:
            logger.info(f"ℹ️ No eligible seller for lead {lead.id} in {lead.facility}")
            return AssignmentResult(lead, AssignmentOutcome.NO_ELIGIBLE_SELLER, None, previous_seller_id)

        await self._notify_assigned(lead)
        return AssignmentResult(lead, AssignmentOutcome.ASSIGNED, seller_id, previous_seller_id)

    async def _load_for_assignee(self, lead_id: int, acting_user_id: int) -> Lead:
        lead = await self.get_lead(lead_id)
        if lead.assigned_to_id != acting_user_id:
            raise NotAssignee(lead.id, acting_user_id, lead.assigned_to_id)
        if not lead.is_pending_acceptance:
            raise NotPending(lead.id, lead.status)
        return lead

    async def accept(
        self,
        lead_id: int,
        acting_user_id: int,
        now: Optional[datetime] = None,
    ) -> Lead:
        """The assignee takes the lead; it becomes a normal working lead."""
        now = now or utc_now()
        lead = await self._load_for_assignee(lead_id, acting_user_id)

        async with self._transaction():
            await self._transition(lead, {
                "accept_status": AcceptStatus.ACCEPTED.value,
                "accepted_at": now,
                "status": LeadStatus.NEW.value,
                **CLEARED_ESCALATION_MARKERS,
            })
            await self._increment_counter(acting_user_id, "leads_accepted_count")
            await self._audit(
                lead, AuditAction.ACCEPTED, acting_user_id,
                None, await self._display_name(acting_user_id),
            )

        logger.info(f"✅ Lead {lead.id} accepted by seller {acting_user_id}")
        return lead

    async def decline(
        self,
        lead_id: int,
        acting_user_id: int,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AssignmentResult:
        """
        The assignee refuses the lead. It is handed to the next seller in
        the same transaction, so it is never left pending as "declined".
        """
        now = now or utc_now()
        lead = await self._load_for_assignee(lead_id, acting_user_id)

        async with self._transaction():
            await self._transition(lead, {
                "accept_status": AcceptStatus.DECLINED.value,
                "declined_at": now,
                "decline_reason": reason,
                **CLEARED_ESCALATION_MARKERS,
            })
            await self._increment_counter(acting_user_id, "leads_declined_count")
            await self._audit(
                lead, AuditAction.DECLINED, acting_user_id,
                await self._display_name(acting_user_id), reason,
            )
            result = await self.reassign_or_release(lead, acting_user_id, now=now)

        logger.info(f"🙅 Lead {lead.id} declined by seller {acting_user_id} -> {result.outcome.value}")
        if result.outcome == AssignmentOutcome.REASSIGNED:
            await self._notify_assigned(lead)
        return result

    async def escalate_timeout(self, lead: Lead, now: Optional[datetime] = None) -> TimeoutEscalation:
        """
        Handles a lead nobody accepted or declined in time.

        The cycle is claimed through `timeout_notified_at`, so concurrent
        monitors (or a racing accept) can only let one escalation through.
        The manager notice is sent whether or not a new seller was found.
        """
        now = now or utc_now()
        if not lead.is_pending_acceptance or lead.timeout_notified_at is not None:
            raise NotPending(lead.id, lead.status)

        seller_id = lead.assigned_to_id

        async with self._transaction():
            await self._transition(
                lead,
                {"timeout_notified_at": now},
                True,
                Lead.timeout_notified_at.is_(None),
            )
            await self._increment_counter(seller_id, "leads_timed_out_count")
            result = await self.reassign_or_release(
                lead,
                seller_id,
                now=now,
                action=AuditAction.AUTO_DECLINED,
                timeout_notified_at=now,
            )

        logger.info(f"⏱️ Lead {lead.id} timed out for seller {seller_id} -> {result.outcome.value}")
        escalation = TimeoutEscalation(result=result, timed_out_seller_id=seller_id)

        if result.outcome == AssignmentOutcome.REASSIGNED:
            await self._notify_assigned(lead)

        await self._notify_manager_of_timeout(lead, seller_id, escalation)
        return escalation

    async def _notify_manager_of_timeout(
        self,
        lead: Lead,
        seller_id: int,
        escalation: TimeoutEscalation,
    ) -> None:
        if not lead.facility:
            logger.warning(f"⚠️ Lead {lead.id} has no facility, no manager to notify")
            return

        try:
            manager = await self.get_manager_for_facility(lead.facility)
            if manager is None:
                logger.warning(f"⚠️ No manager found for facility {lead.facility} (lead {lead.id})")
                return

            seller = await self.get_user(seller_id)
            escalation.manager_id = manager.id
            escalation.manager_notified = await self.notifications.manager_timeout(manager, seller, lead)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"❌ Could not notify manager about lead {lead.id}: {e}", exc_info=True)

    async def mark_reminder_sent(self, lead: Lead, kind: NotificationKind, now: Optional[datetime] = None) -> Lead:
        """Sets the one-shot reminder marker of the current cycle."""
        now = now or utc_now()
        field = {
            NotificationKind.FIRST_REMINDER: "reminder_sent_at_6h",
            NotificationKind.FINAL_REMINDER: "reminder_sent_at_11h",
        }[kind]

        async with self._transaction():
            await self._transition(lead, {field: now}, True, getattr(Lead, field).is_(None))
        return lead

    async def manual_reassign(
        self,
        lead_id: int,
        manager_id: int,
        target_user_id: int,
        now: Optional[datetime] = None,
    ) -> Lead:
        """A manager hands the lead to a specific user (new acceptance cycle)."""
        manager = await self.get_user(manager_id)
        if not manager.is_manager:
            raise PermissionDenied("Only managers can reassign leads", user_id=manager_id)

        target = await self.get_user(target_user_id)
        lead = await self.get_lead(lead_id)
        previous_name = await self._display_name(lead.assigned_to_id)

        async with self._transaction():
            await self.assign_lead(lead, target.id, now=now, audit=False)
            await self._audit(lead, AuditAction.REASSIGNED, manager.id, previous_name, target.full_name)

        logger.info(f"👤 Lead {lead.id} manually reassigned to {target.id} by manager {manager.id}")
        await self._notify_assigned(lead)
        return lead
