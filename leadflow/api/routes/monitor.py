"""
ROUTES: ACCEPTANCE MONITOR
==========================
"""

from fastapi import APIRouter, Depends

from leadflow.domain.entities import User
from leadflow.api.dependencies import get_monitor, require_manager
from leadflow.infrastructure.jobs.acceptance_job import AcceptanceMonitor


router = APIRouter(prefix="/monitor", tags=["Monitor"])


@router.get("/status")
async def monitor_status(monitor: AcceptanceMonitor = Depends(get_monitor)):
    return monitor.status()


@router.post("/run")
async def run_monitor(
    manager: User = Depends(require_manager),
    monitor: AcceptanceMonitor = Depends(get_monitor),
):
    """Runs one acceptance check right away (waits for a running one)."""
    summary = await monitor.run_now()
    return {"success": True, "result": summary}
