"""Volunteer matching for new alerts."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sos_dispatch.models.volunteer import Volunteer
from sos_dispatch.services.geo_service import eligible_volunteers, haversine_m, nearest_volunteers

logger = logging.getLogger(__name__)


@dataclass
class MatchedVolunteer:
    """Volunteer selected for an alert."""

    volunteer: Volunteer
    distance_m: float | None  # None if the volunteer has no location fix


class VolunteerMatcher:
    """Ranks eligible volunteers by distance to an alert.

    An SOS must still reach someone when the geo query fails or finds nobody
    in range, so both cases fall back to any eligible volunteer.
    """

    def __init__(self, radius_km: float = 5.0, max_count: int = 10) -> None:
        self.radius_km = radius_km
        self.max_count = max_count

    def match(
        self,
        db: Session,
        latitude: float,
        longitude: float,
        max_count: int | None = None,
    ) -> list[MatchedVolunteer]:
        limit = max_count if max_count is not None else self.max_count
        if limit <= 0:
            return []

        try:
            nearest = nearest_volunteers(db, latitude, longitude, self.radius_km * 1000, limit)
        except SQLAlchemyError:
            logger.warning("Geo query failed for (%s, %s); using fallback", latitude, longitude, exc_info=True)
            db.rollback()
            nearest = []

        if nearest:
            return [MatchedVolunteer(volunteer=v, distance_m=round(d)) for v, d in nearest]

        return self._fallback(db, latitude, longitude, limit)

    def _fallback(self, db: Session, latitude: float, longitude: float, limit: int) -> list[MatchedVolunteer]:
        stmt = eligible_volunteers().order_by(Volunteer.id).limit(limit)
        volunteers = db.execute(stmt).scalars().all()
        logger.info("Fallback matched %s volunteer(s) without radius filter", len(volunteers))

        matched = []
        for vol in volunteers:
            dist = None
            if vol.latitude is not None and vol.longitude is not None:
                dist = round(haversine_m(latitude, longitude, vol.latitude, vol.longitude))
            matched.append(MatchedVolunteer(volunteer=vol, distance_m=dist))
        # Known distances first, nearest first; unknown keep id order
        matched.sort(key=lambda m: (m.distance_m is None, m.distance_m or 0))
        return matched
