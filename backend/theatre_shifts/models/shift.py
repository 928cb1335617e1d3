from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from theatre_shifts.core.db import Base


class Shift(Base):
    """A volunteer role/time slot on one performance.

    The assignment lives on the row itself: ``participant_id`` is NULL while the shift is
    unfilled and holds exactly one volunteer otherwise.
    """

    __tablename__ = "shifts"
    __table_args__ = (
        CheckConstraint("depart_time > arrive_time", name="ck_shifts_depart_after_arrive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    show_date_id: Mapped[int] = mapped_column(ForeignKey("show_dates.id", ondelete="CASCADE"), index=True)

    role: Mapped[str] = mapped_column(String(100), nullable=False)

    arrive_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    depart_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    participant_id: Mapped[int | None] = mapped_column(
        ForeignKey("participants.id", ondelete="SET NULL"), nullable=True, index=True
    )

    show_date = relationship("ShowDate", back_populates="shifts")
    participant = relationship("Participant", back_populates="shifts")
