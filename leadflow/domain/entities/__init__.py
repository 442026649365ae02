"""Domain entities."""
from .base import Base, TimestampMixin, utc_now, as_utc
from .enums import (
    LeadStatus,
    AcceptStatus,
    AssignmentState,
    EscalationStage,
    LeadSource,
    UserRole,
    AuditAction,
    NotificationKind,
)
from .user import User
from .lead import Lead, CLEARED_ESCALATION_MARKERS
from .seller_pool import SellerPoolEntry, PoolStatusChange
from .audit_log import AuditLog
from .email_notification_log import EmailNotificationLog

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "utc_now",
    "as_utc",
    # Enums
    "LeadStatus",
    "AcceptStatus",
    "AssignmentState",
    "EscalationStage",
    "LeadSource",
    "UserRole",
    "AuditAction",
    "NotificationKind",
    # Models
    "User",
    "Lead",
    "CLEARED_ESCALATION_MARKERS",
    "SellerPoolEntry",
    "PoolStatusChange",
    "AuditLog",
    "EmailNotificationLog",
]
