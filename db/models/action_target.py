"""
db/models/action_target.py

Recovery goals set by an operator against one dimension value,
e.g. "close 50% of the gap at Downtown within 4 weeks".
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, OrgScopedMixin, TimestampMixin, UUIDPrimaryKeyMixin


class TargetStatus:
    ACTIVE = "active"
    COMPLETED = "completed"
    MISSED = "missed"
    CANCELLED = "cancelled"

    ALL = frozenset({ACTIVE, COMPLETED, MISSED, CANCELLED})


class ActionTarget(Base, UUIDPrimaryKeyMixin, OrgScopedMixin, TimestampMixin):
    __tablename__ = "action_targets"

    dimension_field: Mapped[str] = mapped_column(String(255), nullable=False)
    dimension_value: Mapped[str] = mapped_column(String(255), nullable=False)
    target_type: Mapped[str] = mapped_column(String(32), nullable=False, default="reduce_gap")
    target_pct: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=50.0,
        comment="Share of the baseline gap to close, in percent",
    )
    target_value: Mapped[float | None] = mapped_column(
        Float,
        nullable=True,
        comment="Optional absolute gap level that also counts as reached",
    )
    baseline_gap: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    deadline: Mapped[date | None] = mapped_column(Date, nullable=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=TargetStatus.ACTIVE)
    current_gap: Mapped[float | None] = mapped_column(Float, nullable=True)
    current_pct_change: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_checked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_action_targets_org_status", "org_id", "status"),
        Index("ix_action_targets_org_dimension", "org_id", "dimension_field", "dimension_value"),
    )
