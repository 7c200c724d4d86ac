"""Emergency contact notified for an alert."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sos_dispatch.db.base import Base, utcnow


class AlertNotifiedContact(Base):
    """Delivery outcome of one send to one emergency contact."""

    __tablename__ = "alert_notified_contacts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    alert_id: Mapped[int] = mapped_column(ForeignKey("alerts.id", ondelete="CASCADE"), index=True, nullable=False)
    contact_id: Mapped[int | None] = mapped_column(ForeignKey("emergency_contacts.id", ondelete="SET NULL"), nullable=True)
    method: Mapped[str] = mapped_column(String(10), nullable=False, default="sms")  # sms | call | push | email
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="sent")  # sent | delivered | failed
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    notified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
