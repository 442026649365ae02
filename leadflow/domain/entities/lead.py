# leadflow/domain/entities/lead.py

from datetime import datetime
from typing import Optional
from sqlalchemy import (
    String, Integer, DateTime, ForeignKey, Text, JSON, Boolean, Index
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utc_now
from .enums import LeadStatus, AssignmentState, EscalationStage


class Lead(Base):
    __tablename__ = "leads"
    __table_args__ = (
        # "Last assigned lead of the facility" lookup used by the rotation
        Index("idx_leads_facility_created", "facility", "created_at"),
        Index("idx_leads_status_assignee", "status", "assigned_to_id"),
    )

    # ===============================
    # IDENTITY
    # ===============================
    id: Mapped[int] = mapped_column(primary_key=True)
    source: Mapped[str] = mapped_column(String(20), nullable=False)
    facility: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # ===============================
    # CONTACT / INQUIRY
    # ===============================
    contact_name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_email: Mapped[Optional[str]] = mapped_column(String(255))
    contact_phone: Mapped[Optional[str]] = mapped_column(String(50))

    vehicle_title: Mapped[str] = mapped_column(String(255), nullable=False)
    vehicle_link: Mapped[Optional[str]] = mapped_column(String(500))
    listing_id: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    message: Mapped[Optional[str]] = mapped_column(Text)
    raw_payload: Mapped[Optional[dict]] = mapped_column(JSON)

    # ===============================
    # STATUS / ASSIGNMENT
    # ===============================
    status: Mapped[str] = mapped_column(String(30), default=LeadStatus.NEW.value, nullable=False)
    assigned_to_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    assigned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Bumped on every assign; transitions are conditional on it
    assignment_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # ===============================
    # ACCEPTANCE CYCLE
    # ===============================
    accept_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    declined_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    decline_reason: Mapped[Optional[str]] = mapped_column(Text)

    reminder_sent_at_6h: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    reminder_sent_at_11h: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    timeout_notified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # ===============================
    # TIMESTAMPS
    # ===============================
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # ===============================
    # DERIVED STATE
    # ===============================
    @property
    def assignment_state(self) -> AssignmentState:
        if self.status == LeadStatus.PENDING_ACCEPTANCE.value and self.assigned_to_id is not None:
            return AssignmentState.PENDING_ACCEPTANCE
        if self.assigned_to_id is None:
            return AssignmentState.UNASSIGNED
        return AssignmentState.ACCEPTED

    @property
    def is_pending_acceptance(self) -> bool:
        return self.assignment_state == AssignmentState.PENDING_ACCEPTANCE

    @property
    def escalation_stage(self) -> EscalationStage:
        """Highest escalation marker set in the current cycle."""
        if self.timeout_notified_at is not None:
            return EscalationStage.TIMED_OUT
        if self.reminder_sent_at_11h is not None:
            return EscalationStage.REMINDED_11H
        if self.reminder_sent_at_6h is not None:
            return EscalationStage.REMINDED_6H
        return EscalationStage.NONE

    def __repr__(self) -> str:
        return f"<Lead {self.id}: {self.vehicle_title} [{self.status}] -> {self.assigned_to_id}>"


CLEARED_ESCALATION_MARKERS = {
    "reminder_sent_at_6h": None,
    "reminder_sent_at_11h": None,
    "timeout_notified_at": None,
}
