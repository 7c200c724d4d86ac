"""Volunteer profile, duty and location endpoints."""

from __future__ import annotations

import math

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from sos_dispatch.core.alert_policies import ACCEPTED
from sos_dispatch.core.deps import get_current_user, require_volunteer
from sos_dispatch.core.exceptions import SOSError
from sos_dispatch.db.session import get_db
from sos_dispatch.models.alert import Alert
from sos_dispatch.models.alert_volunteer import AlertNotifiedVolunteer
from sos_dispatch.models.user import User
from sos_dispatch.models.volunteer import Volunteer
from sos_dispatch.schemas.volunteer import (
    BadgeResponse,
    DashboardProfile,
    DashboardResponse,
    DutyResponse,
    LocationUpdate,
    ResponseHistoryItem,
    ResponseHistoryPage,
    VolunteerRegister,
    VolunteerResponse,
    VolunteerStats,
)
from sos_dispatch.services.volunteer_service import (
    active_response_count,
    get_volunteer_for_user,
    register_volunteer,
    response_history,
    toggle_duty,
    update_location,
)

router = APIRouter(prefix="/volunteers", tags=["volunteers"])


def to_response(volunteer: Volunteer) -> VolunteerResponse:
    return VolunteerResponse(
        id=volunteer.id,
        user_id=volunteer.user_id,
        id_type=volunteer.id_type,
        occupation=volunteer.occupation,
        skills=volunteer.skills or [],
        is_verified=volunteer.is_verified,
        verified_at=volunteer.verified_at,
        status=volunteer.status,
        is_on_duty=volunteer.is_on_duty,
        latitude=volunteer.latitude,
        longitude=volunteer.longitude,
        location_updated_at=volunteer.location_updated_at,
        stats=VolunteerStats.model_validate(volunteer),
        badges=[BadgeResponse.model_validate(b) for b in volunteer.badges],
        created_at=volunteer.created_at,
    )


def _history_item(entry: AlertNotifiedVolunteer, alert: Alert) -> ResponseHistoryItem:
    took_it = entry.status == ACCEPTED
    return ResponseHistoryItem(
        alert_id=alert.id,
        alert_status=alert.status,
        type=alert.alert_type,
        priority=alert.priority,
        latitude=alert.latitude,
        longitude=alert.longitude,
        address=alert.address,
        created_at=alert.created_at,
        response=entry.status,
        distance=entry.distance,
        response_time=alert.response_time if took_it else None,
        rating=alert.rating if took_it else None,
    )


def _own_profile(db: Session, user: User) -> Volunteer:
    volunteer = get_volunteer_for_user(db, user.id)
    if not volunteer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Volunteer profile not found")
    return volunteer


@router.post("/register", response_model=VolunteerResponse, status_code=status.HTTP_201_CREATED)
def register(
    data: VolunteerRegister,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Apply as a volunteer. The profile stays pending until an admin verifies it."""
    try:
        volunteer = register_volunteer(db, current_user, data.id_type, data.id_number, data.occupation, data.skills)
    except SOSError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return to_response(volunteer)


@router.get("/me", response_model=VolunteerResponse)
def me(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_volunteer),
):
    """Own profile with stats and badges."""
    return to_response(_own_profile(db, current_user))


@router.put("/duty", response_model=DutyResponse)
def duty(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_volunteer),
):
    """Toggle on-duty. Only on-duty volunteers are matched to alerts."""
    volunteer = toggle_duty(db, _own_profile(db, current_user))
    return DutyResponse(is_on_duty=volunteer.is_on_duty)


@router.put("/location", response_model=VolunteerResponse)
def location(
    data: LocationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_volunteer),
):
    volunteer = update_location(db, _own_profile(db, current_user), data.latitude, data.longitude)
    return to_response(volunteer)


@router.get("/history", response_model=ResponseHistoryPage)
def history(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_volunteer),
):
    """Alerts this volunteer was notified on, newest first."""
    rows, total = response_history(db, _own_profile(db, current_user), page, limit)
    return ResponseHistoryPage(
        count=len(rows),
        total=total,
        pages=math.ceil(total / limit),
        current_page=page,
        items=[_history_item(entry, alert) for entry, alert in rows],
    )


@router.get("/dashboard", response_model=DashboardResponse)
def dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_volunteer),
):
    """Profile summary, stats, badges, the latest responses and alerts in progress."""
    volunteer = _own_profile(db, current_user)
    rows, _ = response_history(db, volunteer, 1, 10)
    return DashboardResponse(
        volunteer=DashboardProfile(
            name=current_user.full_name,
            email=current_user.email,
            is_verified=volunteer.is_verified,
            is_on_duty=volunteer.is_on_duty,
            status=volunteer.status,
        ),
        stats=VolunteerStats.model_validate(volunteer),
        badges=[BadgeResponse.model_validate(b) for b in volunteer.badges],
        recent_history=[_history_item(entry, alert) for entry, alert in rows],
        active_alerts=active_response_count(db, volunteer),
    )


@router.get("/me/badges", response_model=list[BadgeResponse])
def badges(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_volunteer),
):
    return _own_profile(db, current_user).badges
