"""Alert lifecycle tests (service layer)."""

import threading
from datetime import timedelta

import pytest
from sqlalchemy import select

from sos_dispatch.core.alert_policies import (
    ACCEPTED,
    ACTIVE,
    CANCELLED,
    DECLINED,
    NO_RESPONSE,
    NOTIFIED,
    RESOLVED,
    RESPONDING,
)
from sos_dispatch.core.exceptions import NotAuthorized, NotFound, StateConflict, ValidationFailed
from sos_dispatch.db.base import utcnow
from sos_dispatch.models.alert import Alert
from sos_dispatch.models.alert_volunteer import AlertNotifiedVolunteer
from sos_dispatch.models.user import User
from sos_dispatch.models.volunteer import Volunteer
from sos_dispatch.services.alert_service import (
    Accepted,
    AlreadyTaken,
    NotEligible,
    accept_alert,
    cancel_alert,
    create_alert,
    decline_alert,
    elapsed_seconds,
    get_active_alert,
    get_alert_for_viewer,
    list_my_alerts,
    list_nearby_alerts,
    resolve_alert,
    submit_feedback,
    update_live_location,
)
from sos_dispatch.services.matching_service import VolunteerMatcher

LAT, LNG = 12.9716, 77.5946


@pytest.fixture
def scenario(db, make_user, make_volunteer):
    """An owner, two nearby volunteers and a fresh alert that notified both."""
    owner = make_user(full_name="Asha")
    near = make_volunteer(latitude=12.9720, longitude=77.5950, full_name="Ravi")
    far = make_volunteer(latitude=12.9800, longitude=77.5946, full_name="Meena")
    created = create_alert(db, owner.id, LAT, LNG, VolunteerMatcher(), message="Help")
    return owner, near, far, created.alert


def _user(db, volunteer):
    return db.get(User, volunteer.user_id)


def test_create_alert_defaults_and_notified_volunteers(db, scenario):
    owner, near, far, alert = scenario

    assert alert.status == ACTIVE
    assert alert.priority == "high"
    assert alert.alert_type == "sos"
    assert [t.action for t in alert.timeline] == ["created"]
    assert [n.volunteer_id for n in alert.notified_volunteers] == [near.id, far.id]
    assert all(n.status == NOTIFIED for n in alert.notified_volunteers)
    distances = [n.distance for n in alert.notified_volunteers]
    assert distances == sorted(distances)


def test_create_alert_respects_max_volunteers(db, make_user, make_volunteer):
    owner = make_user()
    for _ in range(4):
        make_volunteer(latitude=LAT, longitude=LNG)

    created = create_alert(db, owner.id, LAT, LNG, VolunteerMatcher(max_count=3))

    assert len(created.matches) == 3
    assert len(created.alert.notified_volunteers) == 3


@pytest.mark.parametrize("lat,lng", [(None, LNG), (LAT, None), (91.0, LNG), (LAT, -181.0)])
def test_create_alert_rejects_bad_location(db, make_user, lat, lng):
    owner = make_user()

    with pytest.raises(ValidationFailed):
        create_alert(db, owner.id, lat, lng, VolunteerMatcher())

    assert db.execute(select(Alert)).first() is None


def test_accept_sets_responder_and_metrics(db, scenario):
    owner, near, far, alert = scenario

    result = accept_alert(db, alert.id, _user(db, near))

    assert isinstance(result, Accepted)
    assert result.alert.status == RESPONDING
    assert result.alert.responding_volunteer_id == near.id
    assert result.alert.response_time >= 0
    assert result.alert.responding_distance == result.entry.distance
    assert result.entry.status == ACCEPTED
    assert result.alert.timeline[-1].action == "accepted"


def test_accept_requires_notification_and_profile(db, scenario, make_user, make_volunteer):
    owner, near, far, alert = scenario
    stranger = make_volunteer(latitude=40.0, longitude=-74.0)

    assert isinstance(accept_alert(db, alert.id, _user(db, stranger)), NotEligible)
    assert isinstance(accept_alert(db, alert.id, make_user()), NotEligible)
    with pytest.raises(NotFound):
        accept_alert(db, 999999, _user(db, near))


def test_second_accept_is_already_taken(db, scenario):
    owner, near, far, alert = scenario
    accept_alert(db, alert.id, _user(db, near))

    result = accept_alert(db, alert.id, _user(db, far))

    assert isinstance(result, AlreadyTaken)
    assert result.status == RESPONDING
    db.expire_all()
    assert db.get(Alert, alert.id).responding_volunteer_id == near.id


def test_concurrent_accepts_have_exactly_one_winner(db, scenario, session_factory):
    owner, near, far, alert = scenario
    alert_id = alert.id
    user_ids = [near.user_id, far.user_id]
    barrier = threading.Barrier(2)
    results, errors = [], []

    def attempt(user_id):
        session = session_factory()
        try:
            user = session.get(User, user_id)
            barrier.wait()
            results.append(accept_alert(session, alert_id, user))
        except Exception as exc:
            errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=attempt, args=(uid,)) for uid in user_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert errors == []
    winners = [r for r in results if isinstance(r, Accepted)]
    losers = [r for r in results if isinstance(r, AlreadyTaken)]
    assert len(winners) == 1
    assert len(losers) == 1

    db.expire_all()
    stored = db.get(Alert, alert_id)
    assert stored.status == RESPONDING
    assert stored.responding_volunteer_id == winners[0].entry.volunteer_id
    assert [t.action for t in stored.timeline].count("accepted") == 1


def test_decline_counts_once(db, scenario):
    owner, near, far, alert = scenario

    entry = decline_alert(db, alert.id, _user(db, far))
    decline_alert(db, alert.id, _user(db, far))

    assert entry.status == DECLINED
    db.expire_all()
    assert db.get(Volunteer, far.id).declined_alerts == 1
    assert [t.action for t in db.get(Alert, alert.id).timeline].count("declined") == 1


def test_decline_by_unnotified_volunteer_is_forbidden(db, scenario, make_volunteer, make_user):
    owner, near, far, alert = scenario
    stranger = make_volunteer(latitude=40.0, longitude=-74.0)

    with pytest.raises(NotAuthorized):
        decline_alert(db, alert.id, _user(db, stranger))
    with pytest.raises(NotFound):
        decline_alert(db, alert.id, make_user())


def _entry_statuses(db, alert_id):
    db.expire_all()
    rows = db.execute(
        select(AlertNotifiedVolunteer.volunteer_id, AlertNotifiedVolunteer.status).where(
            AlertNotifiedVolunteer.alert_id == alert_id
        )
    ).all()
    return dict(rows)


def test_accept_closes_out_other_notified_volunteers(db, scenario):
    owner, near, far, alert = scenario

    accept_alert(db, alert.id, _user(db, near))

    assert _entry_statuses(db, alert.id) == {near.id: ACCEPTED, far.id: NO_RESPONSE}
    with pytest.raises(StateConflict):
        decline_alert(db, alert.id, _user(db, far))
    assert db.get(Volunteer, far.id).declined_alerts == 0


def test_declined_entry_survives_cancel(db, scenario):
    owner, near, far, alert = scenario
    decline_alert(db, alert.id, _user(db, far))

    cancel_alert(db, alert.id, owner)

    assert _entry_statuses(db, alert.id) == {near.id: NO_RESPONSE, far.id: DECLINED}


def test_owner_resolve_closes_out_notified_volunteers(db, scenario):
    owner, near, far, alert = scenario

    resolve_alert(db, alert.id, owner)

    assert set(_entry_statuses(db, alert.id).values()) == {NO_RESPONSE}


def test_cancel_only_by_owner_while_live(db, scenario):
    owner, near, far, alert = scenario

    with pytest.raises(NotAuthorized):
        cancel_alert(db, alert.id, _user(db, near))

    cancelled = cancel_alert(db, alert.id, owner)
    assert cancelled.status == CANCELLED
    assert cancelled.timeline[-1].action == "cancelled"

    with pytest.raises(StateConflict):
        cancel_alert(db, alert.id, owner)


def test_cancel_after_resolve_is_conflict_and_keeps_resolution(db, scenario):
    owner, near, far, alert = scenario
    accept_alert(db, alert.id, _user(db, near))
    resolve_alert(db, alert.id, owner, notes="Safe now", rating=5)

    with pytest.raises(StateConflict):
        cancel_alert(db, alert.id, owner)

    db.expire_all()
    stored = db.get(Alert, alert.id)
    assert stored.status == RESOLVED
    assert stored.resolution_notes == "Safe now"
    assert stored.rating == 5


def test_resolve_by_responder_updates_reputation(db, scenario):
    owner, near, far, alert = scenario
    accept_alert(db, alert.id, _user(db, near))

    resolution = resolve_alert(db, alert.id, _user(db, near), notes="Escorted home", rating=4)

    stored = resolution.alert
    assert stored.status == RESOLVED
    assert stored.total_duration >= stored.response_time >= 0
    assert stored.timeline[-1].action == "resolved"
    assert [b.name for b in resolution.badges_awarded] == ["First Responder"]

    db.expire_all()
    vol = db.get(Volunteer, near.id)
    assert vol.total_responses == 1
    assert vol.successful_assists == 1
    assert vol.rating == 4
    assert vol.total_ratings == 1


def test_resolve_by_owner_leaves_reputation_alone(db, scenario):
    owner, near, far, alert = scenario
    accept_alert(db, alert.id, _user(db, near))

    resolution = resolve_alert(db, alert.id, owner)

    assert resolution.badges_awarded == []
    db.expire_all()
    assert db.get(Volunteer, near.id).total_responses == 0


def test_resolve_permissions_and_rating_bounds(db, scenario, make_user):
    owner, near, far, alert = scenario

    with pytest.raises(NotAuthorized):
        resolve_alert(db, alert.id, make_user())
    with pytest.raises(ValidationFailed):
        resolve_alert(db, alert.id, owner, rating=6)

    admin = make_user(role="admin")
    assert resolve_alert(db, alert.id, admin).alert.status == RESOLVED
    with pytest.raises(StateConflict):
        resolve_alert(db, alert.id, owner)


def test_feedback_requires_resolved_alert(db, scenario):
    owner, near, far, alert = scenario

    with pytest.raises(StateConflict):
        submit_feedback(db, alert.id, owner, rating=5)
    with pytest.raises(NotAuthorized):
        submit_feedback(db, alert.id, _user(db, near), rating=5)


def test_feedback_rating_flows_into_responder_average(db, scenario):
    owner, near, far, alert = scenario
    accept_alert(db, alert.id, _user(db, near))
    resolve_alert(db, alert.id, owner)

    submit_feedback(db, alert.id, owner, rating=4, feedback="Thank you")
    db.expire_all()
    vol = db.get(Volunteer, near.id)
    assert (vol.rating, vol.total_ratings) == (4, 1)

    # A second rating replaces the first instead of counting twice
    updated = submit_feedback(db, alert.id, owner, rating=2)
    db.expire_all()
    vol = db.get(Volunteer, near.id)
    assert (vol.rating, vol.total_ratings) == (2, 1)
    assert updated.feedback == "Thank you"


def test_feedback_replaces_rating_given_at_responder_resolution(db, scenario):
    owner, near, far, alert = scenario
    accept_alert(db, alert.id, _user(db, near))
    resolve_alert(db, alert.id, _user(db, near), rating=5)

    submit_feedback(db, alert.id, owner, rating=3)

    db.expire_all()
    vol = db.get(Volunteer, near.id)
    assert (vol.rating, vol.total_ratings) == (3, 1)


def test_feedback_rating_out_of_range(db, scenario):
    owner, near, far, alert = scenario
    resolve_alert(db, alert.id, owner)

    with pytest.raises(ValidationFailed):
        submit_feedback(db, alert.id, owner, rating=0)


def test_live_location_appends_history(db, scenario):
    owner, near, far, alert = scenario

    update_live_location(db, alert.id, owner, 12.9730, 77.5960)
    moved = update_live_location(db, alert.id, owner, 12.9740, 77.5970)

    assert (moved.latitude, moved.longitude) == (12.9740, 77.5970)
    assert moved.location_updated_at is not None
    assert [(p.latitude, p.longitude) for p in moved.location_history] == [(12.9730, 77.5960), (12.9740, 77.5970)]

    with pytest.raises(NotAuthorized):
        update_live_location(db, alert.id, _user(db, near), 0, 0)
    cancel_alert(db, alert.id, owner)
    with pytest.raises(StateConflict):
        update_live_location(db, alert.id, owner, 12.0, 77.0)


def test_viewers(db, scenario, make_user):
    owner, near, far, alert = scenario
    accept_alert(db, alert.id, _user(db, near))

    assert get_alert_for_viewer(db, alert.id, owner).id == alert.id
    assert get_alert_for_viewer(db, alert.id, _user(db, near)).id == alert.id
    assert get_alert_for_viewer(db, alert.id, make_user(role="admin")).id == alert.id
    with pytest.raises(NotAuthorized):
        get_alert_for_viewer(db, alert.id, _user(db, far))


def test_owner_reads(db, scenario):
    owner, near, far, alert = scenario
    cancel_alert(db, alert.id, owner)
    second = create_alert(db, owner.id, LAT, LNG, VolunteerMatcher()).alert

    assert [a.id for a in list_my_alerts(db, owner.id)] == [second.id, alert.id]
    assert [a.id for a in list_my_alerts(db, owner.id, status=CANCELLED)] == [alert.id]
    assert get_active_alert(db, owner.id).id == second.id


def test_nearby_lists_only_active_alerts(db, scenario, make_user):
    owner, near, far, alert = scenario
    other = create_alert(db, make_user().id, 13.5, 77.5946, VolunteerMatcher()).alert

    found = list_nearby_alerts(db, LAT, LNG, 5)
    assert [a.id for a, _ in found] == [alert.id]
    assert other.id not in [a.id for a, _ in found]

    accept_alert(db, alert.id, _user(db, near))
    assert list_nearby_alerts(db, LAT, LNG, 5) == []


def test_elapsed_seconds_never_negative():
    now = utcnow()
    assert elapsed_seconds(now, now + timedelta(seconds=90)) == 90
    assert elapsed_seconds(now, now - timedelta(seconds=5)) == 0
    assert elapsed_seconds(now.replace(tzinfo=None), now) == 0
