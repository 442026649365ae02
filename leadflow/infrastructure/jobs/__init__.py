"""Background jobs."""
from .acceptance_job import AcceptanceMonitor, get_acceptance_monitor

__all__ = ["AcceptanceMonitor", "get_acceptance_monitor"]
