"""Badge earned by a volunteer."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sos_dispatch.db.base import Base, utcnow


class VolunteerBadge(Base):
    """Reputation marker. Never revoked; earned at most once per volunteer."""

    __tablename__ = "volunteer_badges"
    __table_args__ = (
        UniqueConstraint("volunteer_id", "name", name="uq_volunteer_badge_name"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    volunteer_id: Mapped[int] = mapped_column(ForeignKey("volunteers.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    icon: Mapped[str | None] = mapped_column(String(10), nullable=True)
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
