"""
INFRASTRUCTURE SERVICES
=======================

Organization:
- Rotation: seller pools, round robin
- Assignment: acceptance state machine
- Communication: email (Resend), notifications
"""

# =============================================================================
# ROTATION
# =============================================================================

from .seller_pool_service import (
    get_seller_pools,
    list_eligible_sellers,
    get_pool_entry,
    create_pool_entry,
    set_pool_entry_enabled,
    reorder_pool,
    move_pool_entry,
)

from .round_robin_service import (
    get_last_assigned_seller_id,
    select_next_seller,
    select_next_seller_excluding,
)

# =============================================================================
# COMMUNICATION
# =============================================================================

from .notification_service import (
    AcceptanceNotifier,
    EmailAcceptanceNotifier,
    NotificationService,
    get_notifier,
)

# =============================================================================
# ASSIGNMENT
# =============================================================================

from .assignment_service import (
    AssignmentOutcome,
    AssignmentResult,
    TimeoutEscalation,
    LeadAssignmentService,
)

__all__ = [
    "get_seller_pools",
    "list_eligible_sellers",
    "get_pool_entry",
    "create_pool_entry",
    "set_pool_entry_enabled",
    "reorder_pool",
    "move_pool_entry",
    "get_last_assigned_seller_id",
    "select_next_seller",
    "select_next_seller_excluding",
    "AcceptanceNotifier",
    "EmailAcceptanceNotifier",
    "NotificationService",
    "get_notifier",
    "AssignmentOutcome",
    "AssignmentResult",
    "TimeoutEscalation",
    "LeadAssignmentService",
]
