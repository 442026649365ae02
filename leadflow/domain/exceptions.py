"""
Typed failures of the assignment flow.

"No eligible seller" is deliberately absent: it is a valid outcome, carried
by `AssignmentResult.outcome`, not an error.
"""

from typing import Optional


class LeadflowError(Exception):
    """Base class for every failure surfaced to callers."""

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


# ==========================================
# NOT FOUND
# ==========================================

class NotFound(LeadflowError):
    pass


class LeadNotFound(NotFound):
    def __init__(self, lead_id: int):
        super().__init__(f"Lead {lead_id} not found", lead_id=lead_id)


class UserNotFound(NotFound):
    def __init__(self, user_id: int):
        super().__init__(f"User {user_id} not found", user_id=user_id)


class PoolEntryNotFound(NotFound):
    def __init__(self, entry_id: int):
        super().__init__(f"Seller pool entry {entry_id} not found", entry_id=entry_id)


# ==========================================
# STATE MACHINE GUARDS
# ==========================================

class NotAssignee(LeadflowError):
    """Accept/decline attempted by someone other than the current assignee."""

    def __init__(self, lead_id: int, user_id: int, assignee_id: Optional[int]):
        super().__init__(
            f"User {user_id} is not the assignee of lead {lead_id}",
            lead_id=lead_id, user_id=user_id, assignee_id=assignee_id,
        )


class NotPending(LeadflowError):
    """The lead is no longer awaiting acceptance (resolved or lost a race)."""

    def __init__(self, lead_id: int, status: Optional[str] = None):
        super().__init__(
            f"Lead {lead_id} is not pending acceptance", lead_id=lead_id, status=status
        )


# ==========================================
# VALIDATION / PERMISSIONS
# ==========================================

class PermissionDenied(LeadflowError):
    pass


class MissingFacility(LeadflowError):
    def __init__(self, lead_id: int):
        super().__init__(f"Lead {lead_id} must have a facility for auto-assignment", lead_id=lead_id)


class InvalidPoolOrder(LeadflowError):
    pass


# ==========================================
# NOTIFICATIONS
# ==========================================

class NotificationFailure(LeadflowError):
    """Best-effort delivery failed. Logged, never propagated to the actor."""
    pass
