"""Volunteer profile schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class VolunteerRegister(BaseModel):
    id_type: str = Field(pattern="^(aadhar|passport|driving|voter)$")
    id_number: str = Field(min_length=1, max_length=50)
    occupation: str | None = Field(default=None, max_length=100)
    skills: list[str] = Field(default_factory=list, max_length=20)


class LocationUpdate(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class BadgeResponse(BaseModel):
    name: str
    icon: str | None = None
    earned_at: datetime

    model_config = {"from_attributes": True}


class VolunteerStats(BaseModel):
    total_responses: int
    successful_assists: int
    declined_alerts: int
    avg_response_time: float
    rating: float
    total_ratings: int

    model_config = {"from_attributes": True}


class VolunteerResponse(BaseModel):
    id: int
    user_id: int
    id_type: str
    occupation: str | None = None
    skills: list[str] = []
    is_verified: bool
    verified_at: datetime | None = None
    status: str  # pending | active | inactive | suspended
    is_on_duty: bool
    latitude: float | None = None
    longitude: float | None = None
    location_updated_at: datetime | None = None
    stats: VolunteerStats
    badges: list[BadgeResponse] = []
    created_at: datetime


class DutyResponse(BaseModel):
    is_on_duty: bool


class ResponseHistoryItem(BaseModel):
    alert_id: int
    alert_status: str
    type: str
    priority: str
    latitude: float
    longitude: float
    address: str | None = None
    created_at: datetime
    response: str  # notified | accepted | declined | no_response
    distance: float | None = None
    response_time: int | None = None
    rating: int | None = None


class ResponseHistoryPage(BaseModel):
    count: int
    total: int
    pages: int
    current_page: int
    items: list[ResponseHistoryItem]


class DashboardProfile(BaseModel):
    name: str
    email: str
    is_verified: bool
    is_on_duty: bool
    status: str


class DashboardResponse(BaseModel):
    volunteer: DashboardProfile
    stats: VolunteerStats
    badges: list[BadgeResponse] = []
    recent_history: list[ResponseHistoryItem] = []
    active_alerts: int
