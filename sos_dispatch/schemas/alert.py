"""Alert schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class AlertCreate(BaseModel):
    # Optional here so a missing fix is reported as a domain validation error
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    address: str | None = Field(default=None, max_length=255)
    message: str | None = Field(default=None, max_length=500)
    type: str = Field(default="sos", pattern="^(sos|medical|accident|harassment|other)$")
    priority: str = Field(default="high", pattern="^(low|medium|high|critical)$")


class AlertCreatedResponse(BaseModel):
    alert_id: int
    volunteers_notified: int
    contacts_notified: int


class AcceptResponse(BaseModel):
    alert_id: int
    status: str
    responding_volunteer_id: int
    accepted_at: datetime
    distance: float | None = None
    response_time: int | None = None


class DeclineResponse(BaseModel):
    alert_id: int
    status: str  # notified-volunteer entry status


class ResolveRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=1000)
    rating: int | None = None
    feedback: str | None = Field(default=None, max_length=1000)


class FeedbackRequest(BaseModel):
    rating: int | None = None
    feedback: str | None = Field(default=None, max_length=1000)


class AlertLocationUpdate(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class AlertLocation(BaseModel):
    latitude: float
    longitude: float
    address: str | None = None
    updated_at: datetime | None = None


class NotifiedVolunteerResponse(BaseModel):
    volunteer_id: int
    notified_at: datetime
    distance: float | None = None
    status: str  # notified | accepted | declined | no_response

    model_config = {"from_attributes": True}


class NotifiedContactResponse(BaseModel):
    contact_id: int
    method: str
    status: str
    error: str | None = None
    notified_at: datetime

    model_config = {"from_attributes": True}


class TimelineEntryResponse(BaseModel):
    action: str
    description: str
    performed_by: int | None = None
    timestamp: datetime

    model_config = {"from_attributes": True}


class RespondingVolunteer(BaseModel):
    volunteer_id: int
    name: str
    phone: str | None = None
    accepted_at: datetime | None = None
    distance: float | None = None


class Resolution(BaseModel):
    resolved_by: int | None = None
    resolved_at: datetime | None = None
    notes: str | None = None
    rating: int | None = None
    feedback: str | None = None


class AlertSummary(BaseModel):
    id: int
    status: str
    priority: str
    type: str
    message: str | None = None
    location: AlertLocation
    responding_volunteer_id: int | None = None
    created_at: datetime
    updated_at: datetime


class AlertDetail(AlertSummary):
    user_id: int
    responding_volunteer: RespondingVolunteer | None = None
    notified_volunteers: list[NotifiedVolunteerResponse] = []
    notified_contacts: list[NotifiedContactResponse] = []
    timeline: list[TimelineEntryResponse] = []
    resolution: Resolution | None = None
    response_time: int | None = None
    total_duration: int | None = None


class ResolveResponse(BaseModel):
    alert: AlertDetail
    badges_awarded: list[str] = []


class NearbyAlertResponse(BaseModel):
    id: int
    latitude: float
    longitude: float
    address: str | None = None
    type: str
    priority: str
    message: str | None = None
    distance: float  # meters
    created_at: datetime
