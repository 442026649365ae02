"""
MODEL: SELLER POOL
==================

Per-facility rotation membership.

A seller takes part in a facility's round robin while its pool entry is
enabled. Entries are ordered by `sort_order` (unique inside a facility,
gaps allowed) and are disabled instead of deleted, since the lead history
still refers to the seller.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, Boolean, ForeignKey, Integer, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utc_now


class SellerPoolEntry(Base):
    """Membership of one seller in one facility's rotation."""

    __tablename__ = "seller_pools"
    __table_args__ = (
        UniqueConstraint("facility", "user_id", name="uq_seller_pools_facility_user"),
        UniqueConstraint("facility", "sort_order", name="uq_seller_pools_facility_sort_order"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    facility: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        flag = "on" if self.is_enabled else "off"
        return f"<SellerPoolEntry {self.facility}#{self.sort_order} user={self.user_id} {flag}>"


class PoolStatusChange(Base):
    """History of enable/disable toggles on a pool entry."""

    __tablename__ = "pool_status_changes"

    id: Mapped[int] = mapped_column(primary_key=True)
    seller_pool_id: Mapped[int] = mapped_column(
        ForeignKey("seller_pools.id", ondelete="CASCADE"), nullable=False, index=True
    )
    changed_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    new_status: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
