from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from theatre_shifts.core.db import Base


class SentEmail(Base):
    """One outbound email attempt (real, simulated or failed)."""

    __tablename__ = "sent_emails"

    id: Mapped[int] = mapped_column(primary_key=True)

    to_email: Mapped[str] = mapped_column(String(320), nullable=False)
    to_participant_id: Mapped[int | None] = mapped_column(
        ForeignKey("participants.id", ondelete="SET NULL"), nullable=True, index=True
    )
    from_email: Mapped[str] = mapped_column(String(320), nullable=False)

    subject: Mapped[str] = mapped_column(String(300), nullable=False)
    email_type: Mapped[str] = mapped_column(String(50), nullable=False)
    html_content: Mapped[str] = mapped_column(Text, nullable=False)

    provider_email_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    # sent | simulated | failed
    delivery_status: Mapped[str] = mapped_column(String(20), nullable=False, default="sent")

    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
