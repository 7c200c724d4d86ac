"""Volunteer profile service."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from sos_dispatch.core.alert_policies import RESPONDING, VOLUNTEER_ACTIVE
from sos_dispatch.core.exceptions import NotFound, StateConflict
from sos_dispatch.db.base import utcnow
from sos_dispatch.models.alert import Alert
from sos_dispatch.models.alert_volunteer import AlertNotifiedVolunteer
from sos_dispatch.models.user import User
from sos_dispatch.models.volunteer import Volunteer


def get_volunteer_for_user(db: Session, user_id: int) -> Volunteer | None:
    return db.execute(select(Volunteer).where(Volunteer.user_id == user_id)).scalar_one_or_none()


def register_volunteer(
    db: Session,
    user: User,
    id_type: str,
    id_number: str,
    occupation: str | None = None,
    skills: list[str] | None = None,
) -> Volunteer:
    """Create a pending, unverified profile and switch the account to the volunteer role."""
    if get_volunteer_for_user(db, user.id):
        raise StateConflict("Volunteer profile already exists")
    volunteer = Volunteer(
        user_id=user.id,
        id_type=id_type,
        id_number=id_number,
        occupation=occupation,
        skills=skills or [],
    )
    db.add(volunteer)
    if user.role == "user":
        user.role = "volunteer"
    db.commit()
    db.refresh(volunteer)
    return volunteer


def verify_volunteer(db: Session, volunteer_id: int, admin_id: int) -> Volunteer:
    """Admin verification: the volunteer becomes eligible for matching."""
    volunteer = db.get(Volunteer, volunteer_id)
    if not volunteer:
        raise NotFound("Volunteer not found")
    volunteer.is_verified = True
    volunteer.status = VOLUNTEER_ACTIVE
    volunteer.verified_at = utcnow()
    volunteer.verified_by = admin_id
    db.commit()
    db.refresh(volunteer)
    return volunteer


def toggle_duty(db: Session, volunteer: Volunteer) -> Volunteer:
    volunteer.is_on_duty = not volunteer.is_on_duty
    db.commit()
    db.refresh(volunteer)
    return volunteer


def update_location(db: Session, volunteer: Volunteer, latitude: float, longitude: float) -> Volunteer:
    volunteer.latitude = latitude
    volunteer.longitude = longitude
    volunteer.location_updated_at = utcnow()
    db.commit()
    db.refresh(volunteer)
    return volunteer


def response_history(
    db: Session,
    volunteer: Volunteer,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[tuple[AlertNotifiedVolunteer, Alert]], int]:
    """Alerts this volunteer was notified on, newest first, one page at a time."""
    total = db.execute(
        select(func.count(AlertNotifiedVolunteer.id)).where(AlertNotifiedVolunteer.volunteer_id == volunteer.id)
    ).scalar_one()
    rows = db.execute(
        select(AlertNotifiedVolunteer, Alert)
        .join(Alert, Alert.id == AlertNotifiedVolunteer.alert_id)
        .where(AlertNotifiedVolunteer.volunteer_id == volunteer.id)
        .order_by(Alert.created_at.desc(), Alert.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    return [(entry, alert) for entry, alert in rows], total


def active_response_count(db: Session, volunteer: Volunteer) -> int:
    return db.execute(
        select(func.count(Alert.id)).where(
            Alert.responding_volunteer_id == volunteer.id,
            Alert.status == RESPONDING,
        )
    ).scalar_one()
