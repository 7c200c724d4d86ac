"""SOS alerts API."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session, sessionmaker

from sos_dispatch.core.config import settings
from sos_dispatch.core.deps import get_current_user, get_dispatcher, get_matcher, require_volunteer
from sos_dispatch.core.exceptions import SOSError
from sos_dispatch.db.session import get_db, get_session_factory
from sos_dispatch.models.alert import Alert
from sos_dispatch.models.user import User
from sos_dispatch.schemas.alert import (
    AcceptResponse,
    AlertCreate,
    AlertCreatedResponse,
    AlertDetail,
    AlertLocation,
    AlertLocationUpdate,
    AlertSummary,
    DeclineResponse,
    FeedbackRequest,
    NearbyAlertResponse,
    NotifiedContactResponse,
    NotifiedVolunteerResponse,
    RespondingVolunteer,
    Resolution,
    ResolveRequest,
    ResolveResponse,
    TimelineEntryResponse,
)
from sos_dispatch.services.alert_service import (
    AlreadyTaken,
    NotEligible,
    accept_alert,
    cancel_alert,
    create_alert,
    decline_alert,
    get_active_alert,
    get_alert_for_viewer,
    list_my_alerts,
    list_nearby_alerts,
    resolve_alert,
    submit_feedback,
    update_live_location,
)
from sos_dispatch.services.matching_service import VolunteerMatcher
from sos_dispatch.services.notification_service import NotificationDispatcher, dispatch_alert_notifications

router = APIRouter(prefix="/alerts", tags=["alerts"])


def _http_error(e: SOSError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=str(e))


def _location(alert: Alert) -> AlertLocation:
    return AlertLocation(
        latitude=alert.latitude,
        longitude=alert.longitude,
        address=alert.address,
        updated_at=alert.location_updated_at,
    )


def _summary(alert: Alert) -> AlertSummary:
    return AlertSummary(
        id=alert.id,
        status=alert.status,
        priority=alert.priority,
        type=alert.alert_type,
        message=alert.message,
        location=_location(alert),
        responding_volunteer_id=alert.responding_volunteer_id,
        created_at=alert.created_at,
        updated_at=alert.updated_at,
    )


def _detail(alert: Alert) -> AlertDetail:
    """Full alert view with notifications, timeline and resolution."""
    responder = None
    if alert.responding_volunteer is not None:
        vol_user = alert.responding_volunteer.user
        responder = RespondingVolunteer(
            volunteer_id=alert.responding_volunteer.id,
            name=vol_user.full_name if vol_user else "",
            phone=vol_user.phone if vol_user else None,
            accepted_at=alert.accepted_at,
            distance=alert.responding_distance,
        )
    resolution = None
    if alert.resolved_at is not None or alert.rating is not None or alert.feedback is not None:
        resolution = Resolution(
            resolved_by=alert.resolved_by,
            resolved_at=alert.resolved_at,
            notes=alert.resolution_notes,
            rating=alert.rating,
            feedback=alert.feedback,
        )
    return AlertDetail(
        **_summary(alert).model_dump(),
        user_id=alert.user_id,
        responding_volunteer=responder,
        notified_volunteers=[NotifiedVolunteerResponse.model_validate(n) for n in alert.notified_volunteers],
        notified_contacts=[NotifiedContactResponse.model_validate(c) for c in alert.notified_contacts],
        timeline=[TimelineEntryResponse.model_validate(t) for t in alert.timeline],
        resolution=resolution,
        response_time=alert.response_time,
        total_duration=alert.total_duration,
    )


@router.post("", response_model=AlertCreatedResponse, status_code=status.HTTP_201_CREATED)
def create(
    data: AlertCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    matcher: VolunteerMatcher = Depends(get_matcher),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """Raise an SOS. Volunteers and contacts are notified after the response is sent."""
    try:
        created = create_alert(
            db,
            current_user.id,
            data.latitude,
            data.longitude,
            matcher,
            address=data.address,
            message=data.message,
            alert_type=data.type,
            priority=data.priority,
        )
    except SOSError as e:
        raise _http_error(e)

    background_tasks.add_task(
        dispatch_alert_notifications,
        session_factory,
        dispatcher,
        created.alert.id,
        current_user.full_name,
    )
    return AlertCreatedResponse(
        alert_id=created.alert.id,
        volunteers_notified=len(created.matches),
        contacts_notified=len(created.contacts),
    )


# ---- Collection reads (before {alert_id} path param) ----


@router.get("/my", response_model=list[AlertSummary])
def my_alerts(
    status_filter: str | None = Query(
        default=None,
        alias="status",
        pattern="^(pending|active|responding|resolved|cancelled|expired)$",
    ),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Current user's alerts, newest first."""
    return [_summary(a) for a in list_my_alerts(db, current_user.id, status_filter)]


@router.get("/active", response_model=AlertDetail | None)
def active_alert(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Current user's open alert, or null."""
    alert = get_active_alert(db, current_user.id)
    return _detail(alert) if alert else None


@router.get("/nearby", response_model=list[NearbyAlertResponse])
def nearby_alerts(
    latitude: float = Query(ge=-90, le=90),
    longitude: float = Query(ge=-180, le=180),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_volunteer),
):
    """Alerts still looking for a responder within the search radius."""
    try:
        found = list_nearby_alerts(db, latitude, longitude, settings.alert_search_radius_km)
    except SOSError as e:
        raise _http_error(e)
    return [
        NearbyAlertResponse(
            id=a.id,
            latitude=a.latitude,
            longitude=a.longitude,
            address=a.address,
            type=a.alert_type,
            priority=a.priority,
            message=a.message,
            distance=round(d),
            created_at=a.created_at,
        )
        for a, d in found
    ]


@router.get("/{alert_id}", response_model=AlertDetail)
def get_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Alert detail. Owner, admin or responding volunteer only."""
    try:
        return _detail(get_alert_for_viewer(db, alert_id, current_user))
    except SOSError as e:
        raise _http_error(e)


# ---- Volunteer responses ----


@router.put("/{alert_id}/accept", response_model=AcceptResponse)
def accept(
    alert_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_volunteer),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Take responsibility for an alert. Exactly one volunteer can win."""
    try:
        result = accept_alert(db, alert_id, current_user)
    except SOSError as e:
        raise _http_error(e)
    if isinstance(result, NotEligible):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=result.reason)
    if isinstance(result, AlreadyTaken):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Alert is no longer available (status: {result.status})",
        )

    alert = result.alert
    dispatcher.notify_volunteer_responding(
        alert.user_id,
        alert.id,
        current_user.full_name,
        alert.responding_distance,
    )
    return AcceptResponse(
        alert_id=alert.id,
        status=alert.status,
        responding_volunteer_id=alert.responding_volunteer_id,
        accepted_at=alert.accepted_at,
        distance=alert.responding_distance,
        response_time=alert.response_time,
    )


@router.put("/{alert_id}/decline", response_model=DeclineResponse)
def decline(
    alert_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_volunteer),
):
    try:
        entry = decline_alert(db, alert_id, current_user)
    except SOSError as e:
        raise _http_error(e)
    return DeclineResponse(alert_id=alert_id, status=entry.status)


# ---- Owner / responder transitions ----


@router.put("/{alert_id}/cancel", response_model=AlertDetail)
def cancel(
    alert_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Cancel own alert. A responding volunteer is told to stand down."""
    try:
        alert = cancel_alert(db, alert_id, current_user)
    except SOSError as e:
        raise _http_error(e)
    if alert.responding_volunteer is not None:
        dispatcher.notify_alert_cancelled(alert.responding_volunteer.user_id, alert.id)
    return _detail(alert)


@router.put("/{alert_id}/resolve", response_model=ResolveResponse)
def resolve(
    alert_id: int,
    data: ResolveRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Mark an alert resolved. Owner, responding volunteer or admin."""
    try:
        resolution = resolve_alert(
            db,
            alert_id,
            current_user,
            notes=data.notes,
            rating=data.rating,
            feedback=data.feedback,
        )
    except SOSError as e:
        raise _http_error(e)
    return ResolveResponse(
        alert=_detail(resolution.alert),
        badges_awarded=[b.name for b in resolution.badges_awarded],
    )


@router.put("/{alert_id}/feedback", response_model=AlertDetail)
def feedback(
    alert_id: int,
    data: FeedbackRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Owner rates the response to a resolved alert."""
    try:
        alert = submit_feedback(db, alert_id, current_user, rating=data.rating, feedback=data.feedback)
    except SOSError as e:
        raise _http_error(e)
    return _detail(alert)


@router.put("/{alert_id}/location", response_model=AlertSummary)
def update_location(
    alert_id: int,
    data: AlertLocationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Live tracking: owner's new position, relayed to the responder."""
    try:
        alert = update_live_location(db, alert_id, current_user, data.latitude, data.longitude)
    except SOSError as e:
        raise _http_error(e)
    if alert.responding_volunteer is not None:
        dispatcher.notify_location_update(alert.responding_volunteer.user_id, alert)
    return _summary(alert)
