"""
ACCEPTANCE ESCALATION POLICY
============================

Decides what the acceptance monitor does with one pending lead.

Rules are checked from the latest threshold down, and a rule only fires
when the lead has not yet reached its stage. A lead first seen after the
timeout goes straight to escalation without stale reminders, and a lead
that already received the final reminder never gets a late first one.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from leadflow.domain.entities.base import as_utc
from leadflow.domain.entities.enums import EscalationStage


class EscalationStep(str, Enum):
    NONE = "none"
    FIRST_REMINDER = "first_reminder"
    FINAL_REMINDER = "final_reminder"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class EscalationPolicy:
    """Thresholds in hours since assignment."""
    first_reminder_hours: float = 6
    final_reminder_hours: float = 11
    timeout_hours: float = 12

    def __post_init__(self):
        if not (0 < self.first_reminder_hours < self.final_reminder_hours < self.timeout_hours):
            raise ValueError(
                "Escalation thresholds must satisfy 0 < first < final < timeout "
                f"(got {self.first_reminder_hours}, {self.final_reminder_hours}, {self.timeout_hours})"
            )

    @classmethod
    def from_settings(cls, settings) -> "EscalationPolicy":
        return cls(
            first_reminder_hours=settings.first_reminder_hours,
            final_reminder_hours=settings.final_reminder_hours,
            timeout_hours=settings.acceptance_timeout_hours,
        )

    def hours_remaining(self, step: EscalationStep) -> float:
        """Hours left before timeout, as quoted in the reminder email."""
        if step == EscalationStep.FIRST_REMINDER:
            return self.timeout_hours - self.first_reminder_hours
        if step == EscalationStep.FINAL_REMINDER:
            return self.timeout_hours - self.final_reminder_hours
        return 0

    def next_step(self, hours_elapsed: float, stage: EscalationStage) -> EscalationStep:
        if hours_elapsed >= self.timeout_hours and stage < EscalationStage.TIMED_OUT:
            return EscalationStep.TIMEOUT
        if hours_elapsed >= self.final_reminder_hours and stage < EscalationStage.REMINDED_11H:
            return EscalationStep.FINAL_REMINDER
        if hours_elapsed >= self.first_reminder_hours and stage < EscalationStage.REMINDED_6H:
            return EscalationStep.FIRST_REMINDER
        return EscalationStep.NONE


def hours_since(moment: datetime, now: datetime) -> float:
    """Fractional hours between two instants (naive values are taken as UTC)."""
    return (as_utc(now) - as_utc(moment)).total_seconds() / 3600
