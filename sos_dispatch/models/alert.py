"""Alert aggregate: one SOS incident raised by a user."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sos_dispatch.db.base import Base, utcnow
from sos_dispatch.models.alert_contact import AlertNotifiedContact
from sos_dispatch.models.alert_location import AlertLocationPoint
from sos_dispatch.models.alert_timeline import AlertTimelineEntry
from sos_dispatch.models.alert_volunteer import AlertNotifiedVolunteer


class Alert(Base):
    """SOS alert. Status only changes through conditional updates in alert_service."""

    __tablename__ = "alerts"
    __table_args__ = (
        Index("ix_alerts_status_created_at", "status", "created_at"),
        Index("ix_alerts_user_created_at", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")  # pending | active | responding | resolved | cancelled | expired
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="high")  # low | medium | high | critical
    alert_type: Mapped[str] = mapped_column("type", String(20), nullable=False, default="sos")  # sos | medical | accident | harassment | other
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Responding volunteer, set once by the accept CAS
    responding_volunteer_id: Mapped[int | None] = mapped_column(
        ForeignKey("volunteers.id", ondelete="SET NULL"), nullable=True
    )
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    responding_distance: Mapped[float | None] = mapped_column(Float, nullable=True)  # meters

    # Resolution
    resolved_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    feedback: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Seconds; computed once from accepted_at / resolved_at
    response_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    responding_volunteer = relationship("Volunteer", foreign_keys=[responding_volunteer_id])
    notified_volunteers: Mapped[list[AlertNotifiedVolunteer]] = relationship(
        order_by=AlertNotifiedVolunteer.id,
        cascade="all, delete-orphan",
    )
    notified_contacts: Mapped[list[AlertNotifiedContact]] = relationship(
        order_by=AlertNotifiedContact.id,
        cascade="all, delete-orphan",
    )
    timeline: Mapped[list[AlertTimelineEntry]] = relationship(
        order_by=AlertTimelineEntry.id,
        cascade="all, delete-orphan",
    )
    location_history: Mapped[list[AlertLocationPoint]] = relationship(
        order_by=AlertLocationPoint.id,
        cascade="all, delete-orphan",
    )
