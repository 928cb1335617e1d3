from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from theatre_shifts.core.db import Base


class Show(Base):
    """A theatrical production with one or more performances."""

    __tablename__ = "shows"
    __table_args__ = (UniqueConstraint("name", name="uq_shows_name"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    dates = relationship("ShowDate", back_populates="show", order_by="ShowDate.start_time")
    intervals = relationship("ShowInterval", back_populates="show", order_by="ShowInterval.start_minutes")
