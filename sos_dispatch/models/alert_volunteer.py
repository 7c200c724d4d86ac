"""Volunteer notified for an alert."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sos_dispatch.db.base import Base, utcnow


class AlertNotifiedVolunteer(Base):
    """Matched volunteer for an alert and their response to it."""

    __tablename__ = "alert_notified_volunteers"
    __table_args__ = (
        UniqueConstraint("alert_id", "volunteer_id", name="uq_alert_notified_volunteer"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    alert_id: Mapped[int] = mapped_column(ForeignKey("alerts.id", ondelete="CASCADE"), index=True, nullable=False)
    volunteer_id: Mapped[int] = mapped_column(ForeignKey("volunteers.id", ondelete="CASCADE"), index=True, nullable=False)
    notified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    distance: Mapped[float | None] = mapped_column(Float, nullable=True)  # meters, None when no location fix
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="notified")  # notified | accepted | declined | no_response

    volunteer = relationship("Volunteer")
