"""
LEAD ACCEPTANCE MONITOR
=======================

Polls the leads waiting for their assignee's answer and escalates them:

    >= 6h   first reminder to the assignee ("6 hours left")
    >= 11h  final reminder to the assignee ("1 hour left")
    >= 12h  timeout: reassign (or release) the lead and warn the manager

Only one rule fires per lead and tick, latest threshold first, so a lead
seen for the first time after an outage goes straight to timeout.

Ticks never overlap: scheduled runs, manual runs and `stop()` are
serialized by one lock. A failure on one lead is logged and the tick moves
on to the next one.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from leadflow.config import get_settings
from leadflow.domain.entities import NotificationKind, utc_now
from leadflow.domain.exceptions import NotPending
from leadflow.domain.services.escalation_policy import (
    EscalationPolicy,
    EscalationStep,
    hours_since,
)
from leadflow.infrastructure.database import async_session
from leadflow.infrastructure.scheduler import (
    create_scheduler,
    describe_jobs,
    register_acceptance_job,
)
from leadflow.infrastructure.services.assignment_service import LeadAssignmentService
from leadflow.infrastructure.services.notification_service import AcceptanceNotifier, get_notifier

logger = logging.getLogger(__name__)


_REMINDER_KINDS = {
    EscalationStep.FIRST_REMINDER: NotificationKind.FIRST_REMINDER,
    EscalationStep.FINAL_REMINDER: NotificationKind.FINAL_REMINDER,
}


class AcceptanceMonitor:
    """Recurring acceptance check with idempotent start/stop."""

    def __init__(
        self,
        session_factory=None,
        notifier: Optional[AcceptanceNotifier] = None,
        policy: Optional[EscalationPolicy] = None,
        interval_minutes: Optional[float] = None,
    ):
        settings = get_settings()

        self.session_factory = session_factory or async_session
        self.notifier = notifier or get_notifier()
        self.policy = policy or EscalationPolicy.from_settings(settings)
        self.interval_minutes = interval_minutes or settings.acceptance_poll_interval_minutes

        self._scheduler: Optional[AsyncIOScheduler] = None
        self._lock = asyncio.Lock()
        self.last_run_at: Optional[datetime] = None
        self.last_summary: Optional[Dict[str, int]] = None

    # ==========================================
    # CONTROL
    # ==========================================

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        if self.running:
            logger.warning("⚠️ Acceptance monitor already running")
            return

        self._scheduler = create_scheduler()
        register_acceptance_job(self._scheduler, self.check_pending_leads, self.interval_minutes)
        self._scheduler.start()
        logger.info(f"🚀 Acceptance monitor started (every {self.interval_minutes:g} min)")

    async def stop(self) -> None:
        """Prevents further ticks and waits for an in-flight one to finish."""
        if not self.running:
            return

        self._scheduler.shutdown(wait=False)
        self._scheduler = None

        async with self._lock:
            pass

        logger.info("🛑 Acceptance monitor stopped")

    async def run_now(self) -> Dict[str, int]:
        """Single manual tick, queued behind a running one."""
        return await self.check_pending_leads()

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "busy": self._lock.locked(),
            "interval_minutes": self.interval_minutes,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_summary": self.last_summary,
            "jobs": describe_jobs(self._scheduler) if self._scheduler else [],
        }

    # ==========================================
    # TICK
    # ==========================================

    async def check_pending_leads(self, now: Optional[datetime] = None) -> Dict[str, int]:
        async with self._lock:
            now = now or utc_now()
            summary = {
                "checked": 0,
                "first_reminders": 0,
                "final_reminders": 0,
                "timeouts": 0,
                "reassigned": 0,
                "released": 0,
                "errors": 0,
            }

            logger.info("🔍 Checking leads pending acceptance...")

            async with self.session_factory() as session:
                service = LeadAssignmentService(session, self.notifier)
                lead_ids = [lead.id for lead in await service.list_pending_acceptance()]

                logger.info(f"📊 {len(lead_ids)} leads pending acceptance")

                for lead_id in lead_ids:
                    summary["checked"] += 1
                    try:
                        await self._process_lead(service, lead_id, now, summary)
                    except NotPending:
                        await session.rollback()
                        logger.info(f"ℹ️ Lead {lead_id} was resolved during the check, skipped")
                    except Exception as e:
                        await session.rollback()
                        summary["errors"] += 1
                        logger.error(
                            f"❌ Acceptance check failed for lead {lead_id}: {e}",
                            exc_info=True,
                            extra={"context": {"lead_id": lead_id}},
                        )

            self.last_run_at = now
            self.last_summary = summary
            logger.info(f"✅ Acceptance check finished: {summary}")
            return summary

    async def _process_lead(
        self,
        service: LeadAssignmentService,
        lead_id: int,
        now: datetime,
        summary: Dict[str, int],
    ) -> None:
        lead = await service.get_lead(lead_id)
        if not lead.is_pending_acceptance or lead.assigned_at is None:
            return

        elapsed = hours_since(lead.assigned_at, now)
        step = self.policy.next_step(elapsed, lead.escalation_stage)

        if step == EscalationStep.NONE:
            return

        logger.info(f"⏰ Lead {lead.id}: {elapsed:.1f}h since assignment -> {step.value}")

        if step == EscalationStep.TIMEOUT:
            escalation = await service.escalate_timeout(lead, now)
            summary["timeouts"] += 1
            summary[escalation.result.outcome.value] += 1
            return

        kind = _REMINDER_KINDS[step]
        seller = await service.get_user(lead.assigned_to_id)
        sent = await service.notifications.reminder(
            kind, seller, lead, self.policy.hours_remaining(step)
        )

        # Keep the delivery log even if the marker write below loses a race
        await service.db.commit()

        if not sent:
            # Marker stays unset so the reminder is retried next tick
            summary["errors"] += 1
            return

        await service.mark_reminder_sent(lead, kind, now)
        summary["first_reminders" if kind == NotificationKind.FIRST_REMINDER else "final_reminders"] += 1


_monitor: Optional[AcceptanceMonitor] = None


def get_acceptance_monitor() -> AcceptanceMonitor:
    """Process-wide monitor used by the application."""
    global _monitor

    if _monitor is None:
        _monitor = AcceptanceMonitor()
    return _monitor
