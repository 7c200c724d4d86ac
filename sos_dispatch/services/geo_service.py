"""Distance calculation and nearest-neighbour queries over stored locations."""

from __future__ import annotations

import math

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from sos_dispatch.core.alert_policies import ACTIVE, VOLUNTEER_ACTIVE
from sos_dispatch.models.alert import Alert
from sos_dispatch.models.volunteer import Volunteer

EARTH_RADIUS_M = 6_371_000.0
# Meters per degree of latitude on the same sphere
_M_PER_DEG_LAT = math.pi * EARTH_RADIUS_M / 180


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance between two lat/lng points in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bounding_box(latitude: float, longitude: float, radius_m: float) -> tuple[float, float, float, float] | None:
    """(min_lat, max_lat, min_lng, max_lng) enclosing the radius.

    Returns None when the box touches a pole or crosses the antimeridian;
    callers then filter on latitude only.
    """
    dlat = radius_m / _M_PER_DEG_LAT
    min_lat, max_lat = latitude - dlat, latitude + dlat
    if min_lat <= -90 or max_lat >= 90:
        return None
    dlng = dlat / math.cos(math.radians(latitude))
    min_lng, max_lng = longitude - dlng, longitude + dlng
    if min_lng < -180 or max_lng > 180:
        return None
    return min_lat, max_lat, min_lng, max_lng


def eligible_volunteers() -> Select:
    """Verified, active, on-duty volunteers."""
    return select(Volunteer).where(
        Volunteer.is_verified.is_(True),
        Volunteer.status == VOLUNTEER_ACTIVE,
        Volunteer.is_on_duty.is_(True),
    )


def _within_radius(stmt: Select, lat_col, lng_col, latitude: float, longitude: float, radius_m: float) -> Select:
    stmt = stmt.where(lat_col.is_not(None), lng_col.is_not(None))
    box = bounding_box(latitude, longitude, radius_m)
    if box is not None:
        min_lat, max_lat, min_lng, max_lng = box
        stmt = stmt.where(
            lat_col.between(min_lat, max_lat),
            lng_col.between(min_lng, max_lng),
        )
    else:
        dlat = radius_m / _M_PER_DEG_LAT
        stmt = stmt.where(lat_col.between(latitude - dlat, latitude + dlat))
    return stmt


def nearest_volunteers(
    db: Session,
    latitude: float,
    longitude: float,
    radius_m: float,
    limit: int,
) -> list[tuple[Volunteer, float]]:
    """Eligible volunteers within radius_m, nearest first, at most `limit`.

    Returns an empty list when nobody matches.
    """
    stmt = _within_radius(eligible_volunteers(), Volunteer.latitude, Volunteer.longitude, latitude, longitude, radius_m)
    candidates = db.execute(stmt).scalars().all()

    ranked: list[tuple[Volunteer, float]] = []
    for vol in candidates:
        dist = haversine_m(latitude, longitude, vol.latitude, vol.longitude)
        if dist <= radius_m:
            ranked.append((vol, dist))
    ranked.sort(key=lambda pair: (pair[1], pair[0].id))
    return ranked[:limit]


def nearby_active_alerts(
    db: Session,
    latitude: float,
    longitude: float,
    radius_m: float,
) -> list[tuple[Alert, float]]:
    """Alerts still soliciting responders within radius_m, nearest first."""
    stmt = _within_radius(select(Alert).where(Alert.status == ACTIVE), Alert.latitude, Alert.longitude, latitude, longitude, radius_m)
    ranked = []
    for alert in db.execute(stmt).scalars().all():
        dist = haversine_m(latitude, longitude, alert.latitude, alert.longitude)
        if dist <= radius_m:
            ranked.append((alert, dist))
    ranked.sort(key=lambda pair: pair[1])
    return ranked
