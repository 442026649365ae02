"""API routes."""

from .leads import router as leads_router
from .seller_pools import router as seller_pools_router
from .monitor import router as monitor_router
from .users import router as users_router

__all__ = [
    "leads_router",
    "seller_pools_router",
    "monitor_router",
    "users_router",
]
