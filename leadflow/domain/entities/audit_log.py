"""
ENTITY: AUDIT LOG
=================

Append-only trail of assignment-affecting events on a lead.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, Integer, Text, DateTime, ForeignKey, event
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utc_now


class AuditLog(Base):
    """One assignment event (assign, accept, decline, auto-decline, reassign, release)."""

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lead_id: Mapped[int] = mapped_column(
        ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Acting user; None when the system acted (monitor, round robin)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)

    action: Mapped[str] = mapped_column(String(100), nullable=False)
    from_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    to_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
        index=True
    )

    def __repr__(self) -> str:
        return f"<AuditLog {self.id}: {self.action} at {self.created_at}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "lead_id": self.lead_id,
            "user_id": self.user_id,
            "action": self.action,
            "from_value": self.from_value,
            "to_value": self.to_value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@event.listens_for(AuditLog, "before_update")
def _reject_audit_update(mapper, connection, target):
    raise ValueError(f"Audit entries are immutable (audit_log id={target.id})")
