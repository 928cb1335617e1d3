from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from theatre_shifts.core.db import Base


class ShowDate(Base):
    """A single performance of a show."""

    __tablename__ = "show_dates"
    __table_args__ = (
        UniqueConstraint("show_id", "start_time", name="uq_show_dates_show_start"),
        CheckConstraint("end_time > start_time", name="ck_show_dates_end_after_start"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    show_id: Mapped[int] = mapped_column(ForeignKey("shows.id", ondelete="CASCADE"), index=True)

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    show = relationship("Show", back_populates="dates")
    shifts = relationship("Shift", back_populates="show_date", order_by="Shift.arrive_time")
