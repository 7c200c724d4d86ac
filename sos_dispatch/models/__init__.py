"""SQLAlchemy models."""

from __future__ import annotations

from sos_dispatch.models.alert import Alert
from sos_dispatch.models.alert_contact import AlertNotifiedContact
from sos_dispatch.models.alert_location import AlertLocationPoint
from sos_dispatch.models.alert_timeline import AlertTimelineEntry
from sos_dispatch.models.alert_volunteer import AlertNotifiedVolunteer
from sos_dispatch.models.emergency_contact import EmergencyContact
from sos_dispatch.models.user import User
from sos_dispatch.models.volunteer import Volunteer
from sos_dispatch.models.volunteer_badge import VolunteerBadge

__all__ = [
    "User",
    "Alert",
    "AlertLocationPoint",
    "AlertNotifiedContact",
    "AlertNotifiedVolunteer",
    "AlertTimelineEntry",
    "EmergencyContact",
    "Volunteer",
    "VolunteerBadge",
]
