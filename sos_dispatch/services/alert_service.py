"""Alert lifecycle: state machine, timeline and response metrics.

Status changes are always conditional UPDATE statements scoped to the alert
id, so concurrent requests on the same alert observe each other's
transitions instead of overwriting them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from sos_dispatch.core.alert_policies import (
    ACCEPTED,
    ACTIVE,
    CANCELLED,
    DECLINED,
    LIVE_STATUSES,
    MAX_RATING,
    MIN_RATING,
    NO_RESPONSE,
    NOTIFIED,
    RESOLVED,
    RESPONDING,
)
from sos_dispatch.core.exceptions import NotAuthorized, NotFound, StateConflict, ValidationFailed
from sos_dispatch.db.base import as_utc, utcnow
from sos_dispatch.models.alert import Alert
from sos_dispatch.models.alert_location import AlertLocationPoint
from sos_dispatch.models.alert_timeline import AlertTimelineEntry
from sos_dispatch.models.alert_volunteer import AlertNotifiedVolunteer
from sos_dispatch.models.emergency_contact import EmergencyContact
from sos_dispatch.models.user import User
from sos_dispatch.models.volunteer import Volunteer
from sos_dispatch.models.volunteer_badge import VolunteerBadge
from sos_dispatch.services.contact_service import list_active_contacts
from sos_dispatch.services.geo_service import nearby_active_alerts
from sos_dispatch.services.matching_service import MatchedVolunteer, VolunteerMatcher
from sos_dispatch.services.reputation_service import check_badges, record_rating, record_response
from sos_dispatch.services.volunteer_service import get_volunteer_for_user

logger = logging.getLogger(__name__)


@dataclass
class CreatedAlert:
    alert: Alert
    matches: list[MatchedVolunteer]
    contacts: list[EmergencyContact]


@dataclass
class Accepted:
    alert: Alert
    entry: AlertNotifiedVolunteer


@dataclass
class AlreadyTaken:
    """Alert left `active` before this accept landed."""

    status: str | None


@dataclass
class NotEligible:
    reason: str


AcceptResult = Accepted | AlreadyTaken | NotEligible


@dataclass
class Resolution:
    alert: Alert
    badges_awarded: list[VolunteerBadge] = field(default_factory=list)


def elapsed_seconds(start: datetime, end: datetime) -> int:
    """Whole seconds from start to end, never negative."""
    return max(0, int((as_utc(end) - as_utc(start)).total_seconds()))


def validate_coordinates(latitude: float | None, longitude: float | None) -> None:
    if latitude is None or longitude is None:
        raise ValidationFailed("Location is required")
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        raise ValidationFailed("Latitude must be within [-90, 90] and longitude within [-180, 180]")


def validate_rating(rating: int | None) -> None:
    if rating is not None and not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationFailed(f"Rating must be between {MIN_RATING} and {MAX_RATING}")


def _add_timeline(db: Session, alert_id: int, action: str, description: str, actor_id: int | None) -> None:
    db.add(
        AlertTimelineEntry(
            alert_id=alert_id,
            action=action,
            description=description,
            performed_by=actor_id,
        )
    )


def _get_alert(db: Session, alert_id: int) -> Alert:
    alert = db.get(Alert, alert_id)
    if not alert:
        raise NotFound("Alert not found")
    return alert


def _notified_entry(db: Session, alert_id: int, volunteer_id: int) -> AlertNotifiedVolunteer | None:
    return db.execute(
        select(AlertNotifiedVolunteer).where(
            AlertNotifiedVolunteer.alert_id == alert_id,
            AlertNotifiedVolunteer.volunteer_id == volunteer_id,
        )
    ).scalar_one_or_none()


def _current_status(db: Session, alert_id: int) -> str | None:
    return db.execute(select(Alert.status).where(Alert.id == alert_id)).scalar_one_or_none()


def mark_unanswered(db: Session, alert_id: int) -> int:
    """Close out notified volunteers who never answered once the alert stops being open."""
    result = db.execute(
        update(AlertNotifiedVolunteer)
        .where(
            AlertNotifiedVolunteer.alert_id == alert_id,
            AlertNotifiedVolunteer.status == NOTIFIED,
        )
        .values(status=NO_RESPONSE)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


# ---------- Create ----------


def create_alert(
    db: Session,
    owner_id: int,
    latitude: float | None,
    longitude: float | None,
    matcher: VolunteerMatcher,
    address: str | None = None,
    message: str | None = None,
    alert_type: str = "sos",
    priority: str = "high",
) -> CreatedAlert:
    """Persist a new active alert, match volunteers and record who was notified.

    Notification delivery itself is left to the dispatcher.
    """
    validate_coordinates(latitude, longitude)

    alert = Alert(
        user_id=owner_id,
        latitude=latitude,
        longitude=longitude,
        address=address,
        message=message,
        alert_type=alert_type,
        priority=priority,
        status=ACTIVE,
    )
    db.add(alert)
    db.flush()
    _add_timeline(db, alert.id, "created", "Emergency alert created", owner_id)
    db.commit()

    matches = matcher.match(db, latitude, longitude)

    now = utcnow()
    seen: set[int] = set()
    unique_matches = []
    for m in matches:
        if m.volunteer.id in seen:
            continue
        seen.add(m.volunteer.id)
        unique_matches.append(m)
        db.add(
            AlertNotifiedVolunteer(
                alert_id=alert.id,
                volunteer_id=m.volunteer.id,
                notified_at=now,
                distance=m.distance_m,
                status=NOTIFIED,
            )
        )
    db.commit()
    db.refresh(alert)

    contacts = list_active_contacts(db, owner_id)
    logger.info(
        "Alert %s created by user=%s: %s volunteer(s) matched, %s contact(s)",
        alert.id,
        owner_id,
        len(unique_matches),
        len(contacts),
    )
    return CreatedAlert(alert=alert, matches=unique_matches, contacts=contacts)


# ---------- Volunteer responses ----------


def accept_alert(db: Session, alert_id: int, user: User) -> AcceptResult:
    """Take the alert for a notified volunteer.

    The `active -> responding` transition is a single conditional UPDATE;
    exactly one of several concurrent accepts sees a matched row.
    """
    alert = _get_alert(db, alert_id)
    volunteer = get_volunteer_for_user(db, user.id)
    if not volunteer:
        return NotEligible("Volunteer profile not found")
    entry = _notified_entry(db, alert_id, volunteer.id)
    if not entry:
        return NotEligible("You were not notified for this alert")
    if alert.status != ACTIVE:
        return AlreadyTaken(alert.status)

    now = utcnow()
    result = db.execute(
        update(Alert)
        .where(
            Alert.id == alert_id,
            Alert.status == ACTIVE,
            Alert.responding_volunteer_id.is_(None),
        )
        .values(
            status=RESPONDING,
            responding_volunteer_id=volunteer.id,
            accepted_at=now,
            responding_distance=entry.distance,
            response_time=elapsed_seconds(alert.created_at, now),
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        status = _current_status(db, alert_id)
        logger.info("Accept by volunteer=%s lost the race on alert %s (now %s)", volunteer.id, alert_id, status)
        return AlreadyTaken(status)

    entry.status = ACCEPTED
    db.flush()
    mark_unanswered(db, alert_id)
    _add_timeline(db, alert_id, "accepted", f"Volunteer {user.full_name} accepted the alert", user.id)
    db.commit()
    db.refresh(alert)
    db.refresh(entry)
    return Accepted(alert=alert, entry=entry)


def decline_alert(db: Session, alert_id: int, user: User) -> AlertNotifiedVolunteer:
    """Record a decline. Declining twice counts once."""
    _get_alert(db, alert_id)
    volunteer = get_volunteer_for_user(db, user.id)
    if not volunteer:
        raise NotFound("Volunteer profile not found")
    entry = _notified_entry(db, alert_id, volunteer.id)
    if not entry:
        raise NotAuthorized("You were not notified for this alert")
    if entry.status == ACCEPTED:
        raise StateConflict("You already accepted this alert")
    if entry.status == DECLINED:
        return entry
    if entry.status == NO_RESPONSE:
        raise StateConflict("Alert is no longer open")

    entry.status = DECLINED
    volunteer.declined_alerts += 1
    _add_timeline(db, alert_id, "declined", f"Volunteer {user.full_name} declined the alert", user.id)
    db.commit()
    db.refresh(entry)
    return entry


# ---------- Owner / responder transitions ----------


def cancel_alert(db: Session, alert_id: int, user: User) -> Alert:
    alert = _get_alert(db, alert_id)
    if alert.user_id != user.id:
        raise NotAuthorized("Not authorized to cancel this alert")
    if alert.status not in LIVE_STATUSES:
        raise StateConflict("Alert is already closed")

    now = utcnow()
    result = db.execute(
        update(Alert)
        .where(Alert.id == alert_id, Alert.status.in_(LIVE_STATUSES))
        .values(status=CANCELLED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise StateConflict("Alert is already closed")

    mark_unanswered(db, alert_id)
    _add_timeline(db, alert_id, "cancelled", "Alert cancelled by user", user.id)
    db.commit()
    db.refresh(alert)
    return alert


def resolve_alert(
    db: Session,
    alert_id: int,
    user: User,
    notes: str | None = None,
    rating: int | None = None,
    feedback: str | None = None,
) -> Resolution:
    """Close the alert as resolved. A responder-attributed resolution updates reputation."""
    alert = _get_alert(db, alert_id)
    volunteer = get_volunteer_for_user(db, user.id)
    is_owner = alert.user_id == user.id
    is_responder = volunteer is not None and alert.responding_volunteer_id == volunteer.id
    if not (is_owner or is_responder or user.role == "admin"):
        raise NotAuthorized("Not authorized to resolve this alert")
    validate_rating(rating)
    if alert.status not in LIVE_STATUSES:
        raise StateConflict("Alert is already closed")

    now = utcnow()
    result = db.execute(
        update(Alert)
        .where(Alert.id == alert_id, Alert.status.in_(LIVE_STATUSES))
        .values(
            status=RESOLVED,
            resolved_by=user.id,
            resolved_at=now,
            resolution_notes=notes,
            rating=rating,
            feedback=feedback,
            total_duration=elapsed_seconds(alert.created_at, now),
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise StateConflict("Alert is already closed")

    mark_unanswered(db, alert_id)
    _add_timeline(db, alert_id, "resolved", "Alert resolved", user.id)

    awarded: list[VolunteerBadge] = []
    if is_responder:
        record_response(volunteer, alert.response_time, rating)
        awarded = check_badges(db, volunteer)

    db.commit()
    db.refresh(alert)
    return Resolution(alert=alert, badges_awarded=awarded)


def _rating_applied(db: Session, alert: Alert, volunteer: Volunteer) -> bool:
    """Whether alert.rating is already part of the volunteer's running average."""
    if alert.rating is None:
        return False
    if alert.resolved_by == volunteer.user_id:
        return True
    rated = db.execute(
        select(AlertTimelineEntry.id).where(
            AlertTimelineEntry.alert_id == alert.id,
            AlertTimelineEntry.action == "rated",
        )
    ).first()
    return rated is not None


def submit_feedback(
    db: Session,
    alert_id: int,
    user: User,
    rating: int | None = None,
    feedback: str | None = None,
) -> Alert:
    """Owner rates a resolved alert; the rating flows into the responder's average."""
    alert = _get_alert(db, alert_id)
    if alert.user_id != user.id:
        raise NotAuthorized("Only the alert owner can leave feedback")
    validate_rating(rating)
    if alert.status != RESOLVED:
        raise StateConflict("Feedback can only be left on resolved alerts")

    action = "feedback"
    if rating is not None:
        volunteer = None
        if alert.responding_volunteer_id is not None:
            volunteer = db.get(Volunteer, alert.responding_volunteer_id)
        if volunteer:
            previous = alert.rating if _rating_applied(db, alert, volunteer) else None
            record_rating(volunteer, rating, previous=previous)
            action = "rated"
        alert.rating = rating
    if feedback is not None:
        alert.feedback = feedback

    _add_timeline(db, alert_id, action, "Feedback submitted", user.id)
    db.commit()
    db.refresh(alert)
    return alert


def update_live_location(db: Session, alert_id: int, user: User, latitude: float, longitude: float) -> Alert:
    alert = _get_alert(db, alert_id)
    if alert.user_id != user.id:
        raise NotAuthorized("Not authorized")
    validate_coordinates(latitude, longitude)
    if alert.status not in LIVE_STATUSES:
        raise StateConflict("Alert is already closed")

    now = utcnow()
    alert.latitude = latitude
    alert.longitude = longitude
    alert.location_updated_at = now
    db.add(AlertLocationPoint(alert_id=alert.id, latitude=latitude, longitude=longitude, recorded_at=now))
    db.commit()
    db.refresh(alert)
    return alert


# ---------- Reads ----------


def get_alert_for_viewer(db: Session, alert_id: int, user: User) -> Alert:
    """Owner, admin or the responding volunteer may view an alert."""
    alert = _get_alert(db, alert_id)
    if alert.user_id == user.id or user.role == "admin":
        return alert
    volunteer = get_volunteer_for_user(db, user.id)
    if volunteer is not None and alert.responding_volunteer_id == volunteer.id:
        return alert
    raise NotAuthorized("Not authorized to view this alert")


def list_my_alerts(db: Session, user_id: int, status: str | None = None, limit: int = 20) -> list[Alert]:
    """Owner's alerts, newest first."""
    stmt = select(Alert).where(Alert.user_id == user_id)
    if status:
        stmt = stmt.where(Alert.status == status)
    stmt = stmt.order_by(Alert.created_at.desc(), Alert.id.desc()).limit(limit)
    return list(db.execute(stmt).scalars().all())


def get_active_alert(db: Session, user_id: int) -> Alert | None:
    return db.execute(
        select(Alert)
        .where(Alert.user_id == user_id, Alert.status.in_(LIVE_STATUSES))
        .order_by(Alert.created_at.desc(), Alert.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def list_nearby_alerts(
    db: Session,
    latitude: float,
    longitude: float,
    radius_km: float,
) -> list[tuple[Alert, float]]:
    validate_coordinates(latitude, longitude)
    return nearby_active_alerts(db, latitude, longitude, radius_km * 1000)
