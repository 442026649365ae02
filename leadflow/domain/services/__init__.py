"""Pure domain policies (no I/O)."""
from .rotation import pick_next_seller
from .escalation_policy import EscalationPolicy, EscalationStep, hours_since

__all__ = [
    "pick_next_seller",
    "EscalationPolicy",
    "EscalationStep",
    "hours_since",
]
