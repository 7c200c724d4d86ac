"""Volunteer responder profile."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sos_dispatch.db.base import Base, utcnow
from sos_dispatch.models.volunteer_badge import VolunteerBadge


class Volunteer(Base):
    """Verified individual who can be matched to nearby alerts."""

    __tablename__ = "volunteers"
    __table_args__ = (
        Index("ix_volunteers_eligibility", "status", "is_on_duty", "is_verified"),
        Index("ix_volunteers_location", "latitude", "longitude"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    id_type: Mapped[str] = mapped_column(String(20), nullable=False)  # aadhar | passport | driving | voter
    id_number: Mapped[str] = mapped_column(String(50), nullable=False)
    occupation: Mapped[str | None] = mapped_column(String(100), nullable=True)
    skills: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    verified_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")  # pending | active | inactive | suspended
    is_on_duty: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Current location fix; None until the volunteer reports one
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Running stats; each average is stored next to the count it was taken over
    total_responses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    successful_assists: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    declined_alerts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_response_time: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)  # seconds
    rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_ratings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", foreign_keys=[user_id])
    badges: Mapped[list[VolunteerBadge]] = relationship(
        order_by=VolunteerBadge.id,
        cascade="all, delete-orphan",
    )
