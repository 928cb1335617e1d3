from __future__ import annotations

from sqlalchemy import ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from theatre_shifts.core.db import Base


class ShowInterval(Base):
    """Intermission inside a show, counted in minutes from curtain up."""

    __tablename__ = "show_intervals"

    id: Mapped[int] = mapped_column(primary_key=True)

    show_id: Mapped[int] = mapped_column(ForeignKey("shows.id", ondelete="CASCADE"), index=True)

    start_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    show = relationship("Show", back_populates="intervals")
