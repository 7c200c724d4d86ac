"""Notification fan-out to matched volunteers and emergency contacts."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from sqlalchemy.orm import Session, sessionmaker

from sos_dispatch.core.alert_policies import FAILED
from sos_dispatch.core.ws_manager import (
    ALERT_CANCELLED,
    LOCATION_UPDATE,
    NEW_ALERT,
    VOLUNTEER_RESPONDING,
    Publisher,
)
from sos_dispatch.models.alert import Alert
from sos_dispatch.models.alert_contact import AlertNotifiedContact
from sos_dispatch.models.emergency_contact import EmergencyContact
from sos_dispatch.services.contact_service import list_active_contacts
from sos_dispatch.services.matching_service import MatchedVolunteer
from sos_dispatch.services.sms_gateway import GatewayOutcome

logger = logging.getLogger(__name__)


class Gateway(Protocol):
    def send_sms(self, phone: str, text: str) -> GatewayOutcome: ...

    def call(self, phone: str, script: str) -> GatewayOutcome: ...


@dataclass
class ContactResult:
    contact_id: int
    method: str  # sms | call
    status: str  # sent | failed
    error: str | None = None


@dataclass
class DispatchResult:
    volunteers_notified: int
    contact_results: list[ContactResult] = field(default_factory=list)


def eta_estimator(meters_per_minute: float) -> Callable[[float | None], int | None]:
    """Build a coarse ETA function: whole minutes to cover a distance."""

    def estimate(distance_m: float | None) -> int | None:
        if distance_m is None:
            return None
        return math.ceil(distance_m / meters_per_minute)

    return estimate


class NotificationDispatcher:
    """Publishes alert events and contacts the alerting user's emergency contacts.

    Every send is attempted independently; a failure on one recipient is
    recorded and never stops the others.
    """

    def __init__(
        self,
        publisher: Publisher,
        gateway: Gateway,
        location_base_url: str = "https://www.google.com/maps?q=",
        estimate_eta: Callable[[float | None], int | None] | None = None,
    ) -> None:
        self.publisher = publisher
        self.gateway = gateway
        self.location_base_url = location_base_url
        self.estimate_eta = estimate_eta or eta_estimator(500.0)

    def location_link(self, latitude: float, longitude: float) -> str:
        return f"{self.location_base_url}{latitude},{longitude}"

    def dispatch(
        self,
        db: Session,
        alert: Alert,
        matches: list[MatchedVolunteer],
        contacts: list[EmergencyContact],
        requester_name: str,
    ) -> DispatchResult:
        notified = self.notify_volunteers(alert, matches, requester_name)
        results = self.notify_contacts(db, alert, contacts, requester_name)
        logger.info(
            "Alert %s dispatched: %s volunteer(s), %s contact send(s), %s failed",
            alert.id,
            notified,
            len(results),
            sum(1 for r in results if r.status == FAILED),
        )
        return DispatchResult(volunteers_notified=notified, contact_results=results)

    # ---------- Volunteer channel ----------

    def notify_volunteers(self, alert: Alert, matches: list[MatchedVolunteer], requester_name: str) -> int:
        count = 0
        for m in matches:
            payload = {
                "alert_id": alert.id,
                "location": {"latitude": alert.latitude, "longitude": alert.longitude, "address": alert.address},
                "distance": m.distance_m,
                "user_name": requester_name,
                "message": alert.message,
                "type": alert.alert_type,
                "priority": alert.priority,
            }
            if self._publish(m.volunteer.user_id, NEW_ALERT, payload):
                count += 1
        return count

    def notify_volunteer_responding(
        self,
        owner_id: int,
        alert_id: int,
        volunteer_name: str,
        distance_m: float | None,
    ) -> None:
        self._publish(
            owner_id,
            VOLUNTEER_RESPONDING,
            {
                "alert_id": alert_id,
                "volunteer_name": volunteer_name,
                "distance": distance_m,
                "estimated_minutes": self.estimate_eta(distance_m),
            },
        )

    def notify_alert_cancelled(self, volunteer_user_id: int, alert_id: int) -> None:
        self._publish(volunteer_user_id, ALERT_CANCELLED, {"alert_id": alert_id})

    def notify_location_update(self, volunteer_user_id: int, alert: Alert) -> None:
        self._publish(
            volunteer_user_id,
            LOCATION_UPDATE,
            {"alert_id": alert.id, "location": {"lat": alert.latitude, "lng": alert.longitude}},
        )

    def _publish(self, subscriber_id: int, event: str, payload: dict[str, Any]) -> bool:
        try:
            self.publisher.publish(subscriber_id, event, payload)
        except Exception:
            logger.warning("Failed to publish %s to user=%s", event, subscriber_id, exc_info=True)
            return False
        return True

    # ---------- Contact channel ----------

    def notify_contacts(
        self,
        db: Session,
        alert: Alert,
        contacts: list[EmergencyContact],
        requester_name: str,
    ) -> list[ContactResult]:
        link = self.location_link(alert.latitude, alert.longitude)
        sms_text = f"EMERGENCY! {requester_name} triggered SOS and needs help. Location: {link}"
        call_script = (
            f"This is an emergency alert. {requester_name} has triggered an S O S and needs help. "
            "Their live location has been sent to you by text message."
        )

        results: list[ContactResult] = []
        for contact in contacts:
            results.append(self._attempt(contact, "sms", self.gateway.send_sms, sms_text))
            if contact.is_primary:
                results.append(self._attempt(contact, "call", self.gateway.call, call_script))

        for r in results:
            db.add(
                AlertNotifiedContact(
                    alert_id=alert.id,
                    contact_id=r.contact_id,
                    method=r.method,
                    status=r.status,
                    error=r.error,
                )
            )
        db.commit()
        return results

    def _attempt(
        self,
        contact: EmergencyContact,
        method: str,
        send: Callable[[str, str], GatewayOutcome],
        text: str,
    ) -> ContactResult:
        try:
            outcome = send(contact.phone, text)
        except Exception as exc:
            logger.error("[%s ERROR] contact=%s: %s", method.upper(), contact.id, exc)
            return ContactResult(contact_id=contact.id, method=method, status=FAILED, error=str(exc))
        return ContactResult(contact_id=contact.id, method=method, status=outcome.status, error=outcome.error)


def dispatch_alert_notifications(
    session_factory: sessionmaker,
    dispatcher: NotificationDispatcher,
    alert_id: int,
    requester_name: str,
) -> DispatchResult | None:
    """Run a full dispatch for a freshly created alert in its own session.

    Scheduled after the creation response so the caller never waits on the
    SMS/voice gateway.
    """
    db = session_factory()
    try:
        alert = db.get(Alert, alert_id)
        if alert is None:
            logger.warning("Alert %s vanished before dispatch", alert_id)
            return None
        matches = [
            MatchedVolunteer(volunteer=entry.volunteer, distance_m=entry.distance)
            for entry in alert.notified_volunteers
        ]
        contacts = list_active_contacts(db, alert.user_id)
        return dispatcher.dispatch(db, alert, matches, contacts, requester_name)
    finally:
        db.close()
