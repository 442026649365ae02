"""
MODEL: USER
===========

Managers and sellers of a facility.

Sellers receive leads through the facility rotation; the per-seller
counters below are reporting-only and are never decremented.
"""

from typing import Optional
from sqlalchemy import String, Boolean, Integer
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin
from .enums import UserRole


class User(Base, TimestampMixin):
    """Dashboard user (manager or seller)."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default=UserRole.SELLER.value)
    facility: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Opt-in for the "new lead assigned to you" email
    email_on_lead_assignment: Mapped[bool] = mapped_column(Boolean, default=True)

    # ==========================================
    # ACCEPTANCE COUNTERS
    # ==========================================
    leads_accepted_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    leads_declined_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    leads_reassigned_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    leads_timed_out_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    @property
    def full_name(self) -> str:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or self.email

    @property
    def is_manager(self) -> bool:
        return self.role == UserRole.MANAGER.value

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email} ({self.role})>"
