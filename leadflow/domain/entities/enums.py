"""Enums - fixed values used across the system."""

from enum import Enum


class LeadStatus(str, Enum):
    """Business status of a lead in the sales funnel."""
    PENDING_ACCEPTANCE = "pending_acceptance"  # Placeholder while the assignee decides
    NEW = "new"                                # Working status once accepted / released
    CONTACTED = "contacted"
    QUOTE_SENT = "quote_sent"
    WON = "won"
    LOST = "lost"


class AcceptStatus(str, Enum):
    """Outcome of the current acceptance cycle."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class AssignmentState(str, Enum):
    """Assignment state derived from status + assignee."""
    UNASSIGNED = "unassigned"
    PENDING_ACCEPTANCE = "pending_acceptance"
    ACCEPTED = "accepted"


class EscalationStage(int, Enum):
    """
    Escalation progress of one acceptance cycle.

    Ordered: a stage only ever moves forward within a cycle.
    """
    NONE = 0
    REMINDED_6H = 1
    REMINDED_11H = 2
    TIMED_OUT = 3


class LeadSource(str, Enum):
    """Where the lead came from."""
    BYTBIL = "bytbil"
    BLOCKET = "blocket"
    WEBSITE = "website"
    OWN = "own"


class UserRole(str, Enum):
    """Access level of a user."""
    MANAGER = "manager"
    SELLER = "seller"


class AuditAction(str, Enum):
    """Actions recorded in a lead's audit trail."""
    ASSIGNED = "Lead assigned"
    ACCEPTED = "Lead accepted"
    DECLINED = "Lead declined"
    AUTO_DECLINED = "Lead auto-declined due to timeout"
    REASSIGNED = "Lead reassigned"
    RELEASED = "Lead released to unassigned pool"


class NotificationKind(str, Enum):
    """Outbound notifications sent by the acceptance flow."""
    LEAD_ASSIGNED = "lead_assigned"
    FIRST_REMINDER = "first_reminder"
    FINAL_REMINDER = "final_reminder"
    MANAGER_TIMEOUT = "manager_timeout"
