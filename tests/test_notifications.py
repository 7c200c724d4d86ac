"""Notification dispatcher tests."""

from sqlalchemy import select

from sos_dispatch.core.alert_policies import FAILED, SENT
from sos_dispatch.core.ws_manager import ALERT_CANCELLED, NEW_ALERT, VOLUNTEER_RESPONDING
from sos_dispatch.models.alert_contact import AlertNotifiedContact
from sos_dispatch.services.alert_service import create_alert
from sos_dispatch.services.contact_service import add_contact
from sos_dispatch.services.matching_service import VolunteerMatcher
from sos_dispatch.services.notification_service import (
    NotificationDispatcher,
    dispatch_alert_notifications,
    eta_estimator,
)


def _alert_with_contacts(db, make_user, make_volunteer):
    owner = make_user(full_name="Asha")
    vol = make_volunteer(latitude=12.9720, longitude=77.5950)
    primary = add_contact(db, owner.id, "Mom", "9000000001", "Mother", is_primary=True)
    other = add_contact(db, owner.id, "Friend", "9000000002", "Friend")
    created = create_alert(db, owner.id, 12.9716, 77.5946, VolunteerMatcher(), message="Help")
    return owner, vol, primary, other, created


def test_eta_estimator_rounds_up():
    estimate = eta_estimator(500)
    assert estimate(0) == 0
    assert estimate(501) == 2
    assert estimate(None) is None


def test_dispatch_publishes_and_contacts_everyone(db, make_user, make_volunteer, publisher, gateway):
    owner, vol, primary, other, created = _alert_with_contacts(db, make_user, make_volunteer)
    dispatcher = NotificationDispatcher(publisher, gateway, location_base_url="https://maps.test/?q=")

    result = dispatcher.dispatch(db, created.alert, created.matches, created.contacts, "Asha")

    assert result.volunteers_notified == 1
    [(subscriber, payload)] = publisher.for_event(NEW_ALERT)
    assert subscriber == vol.user_id
    assert payload["alert_id"] == created.alert.id
    assert payload["user_name"] == "Asha"
    assert payload["priority"] == "high"

    # SMS to every contact, a call only to the primary
    assert sorted(p for p, _ in gateway.sms) == ["9000000001", "9000000002"]
    assert [p for p, _ in gateway.calls] == ["9000000001"]
    assert "https://maps.test/?q=12.9716,77.5946" in gateway.sms[0][1]

    rows = db.execute(select(AlertNotifiedContact)).scalars().all()
    assert sorted((r.contact_id, r.method) for r in rows) == sorted(
        [(primary.id, "sms"), (primary.id, "call"), (other.id, "sms")]
    )
    assert all(r.status == SENT for r in rows)


def test_one_failing_contact_does_not_stop_the_rest(db, make_user, make_volunteer, publisher, gateway):
    owner, vol, primary, other, created = _alert_with_contacts(db, make_user, make_volunteer)
    gateway.failing.add("9000000001")
    dispatcher = NotificationDispatcher(publisher, gateway)

    result = dispatcher.dispatch(db, created.alert, created.matches, created.contacts, "Asha")

    by_key = {(r.contact_id, r.method): r for r in result.contact_results}
    assert by_key[(primary.id, "sms")].status == FAILED
    assert by_key[(primary.id, "call")].status == FAILED
    assert by_key[(other.id, "sms")].status == SENT
    assert "carrier rejected" in by_key[(primary.id, "sms")].error
    assert [p for p, _ in gateway.sms] == ["9000000002"]


def test_publisher_failure_is_swallowed(gateway):
    class Broken:
        def publish(self, subscriber_id, event, payload):
            raise ConnectionError("socket gone")

    dispatcher = NotificationDispatcher(Broken(), gateway)
    dispatcher.notify_alert_cancelled(1, 99)  # must not raise


def test_volunteer_responding_carries_eta(publisher, gateway):
    dispatcher = NotificationDispatcher(publisher, gateway, estimate_eta=eta_estimator(100))

    dispatcher.notify_volunteer_responding(7, 3, "Ravi", 250)
    dispatcher.notify_alert_cancelled(8, 3)

    [(subscriber, payload)] = publisher.for_event(VOLUNTEER_RESPONDING)
    assert subscriber == 7
    assert payload["estimated_minutes"] == 3
    assert publisher.for_event(ALERT_CANCELLED) == [(8, {"alert_id": 3})]


def test_dispatch_in_own_session(db, make_user, make_volunteer, publisher, gateway, session_factory):
    owner, vol, primary, other, created = _alert_with_contacts(db, make_user, make_volunteer)

    result = dispatch_alert_notifications(
        session_factory,
        NotificationDispatcher(publisher, gateway),
        created.alert.id,
        "Asha",
    )

    assert result.volunteers_notified == 1
    assert len(result.contact_results) == 3
    assert publisher.for_event(NEW_ALERT)[0][0] == vol.user_id


def test_dispatch_for_missing_alert_returns_none(dispatcher, session_factory):
    assert dispatch_alert_notifications(session_factory, dispatcher, 424242, "x") is None
