"""
Background job scheduling (APScheduler)
"""

from .scheduler import (
    ACCEPTANCE_JOB_ID,
    create_scheduler,
    register_acceptance_job,
    describe_jobs,
)

__all__ = [
    "ACCEPTANCE_JOB_ID",
    "create_scheduler",
    "register_acceptance_job",
    "describe_jobs",
]
