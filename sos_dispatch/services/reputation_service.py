"""Responder reputation: running stats and badge awards."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from sos_dispatch.core.alert_policies import (
    ASSIST_BADGES,
    FIRST_RESPONDER_BADGE,
    QUICK_RESPONDER_BADGE,
    QUICK_RESPONDER_MAX_AVG_SECONDS,
    QUICK_RESPONDER_MIN_RESPONSES,
)
from sos_dispatch.db.base import utcnow
from sos_dispatch.models.volunteer import Volunteer
from sos_dispatch.models.volunteer_badge import VolunteerBadge

logger = logging.getLogger(__name__)


def record_response(
    volunteer: Volunteer,
    response_time: int | None,
    rating: int | None = None,
) -> None:
    """Fold one successful, volunteer-resolved response into the running stats."""
    volunteer.total_responses += 1
    volunteer.successful_assists += 1

    n = volunteer.total_responses
    sample = response_time if response_time is not None else 0
    volunteer.avg_response_time = (volunteer.avg_response_time * (n - 1) + sample) / n

    if rating is not None:
        record_rating(volunteer, rating)


def record_rating(volunteer: Volunteer, rating: int, previous: int | None = None) -> None:
    """Add a rating to the running average, or replace `previous` with it."""
    if previous is not None and volunteer.total_ratings > 0:
        total = volunteer.rating * volunteer.total_ratings - previous + rating
        volunteer.rating = total / volunteer.total_ratings
        return
    total = volunteer.rating * volunteer.total_ratings + rating
    volunteer.total_ratings += 1
    volunteer.rating = total / volunteer.total_ratings


def qualifying_badges(volunteer: Volunteer) -> list[tuple[str, str]]:
    """All (name, icon) badges the current stats qualify for."""
    badges = []
    if volunteer.total_responses >= 1:
        badges.append(FIRST_RESPONDER_BADGE)
    for name, icon, threshold in ASSIST_BADGES:
        if volunteer.successful_assists >= threshold:
            badges.append((name, icon))
    if (
        volunteer.total_responses >= QUICK_RESPONDER_MIN_RESPONSES
        and volunteer.avg_response_time < QUICK_RESPONDER_MAX_AVG_SECONDS
    ):
        badges.append(QUICK_RESPONDER_BADGE)
    return badges


def check_badges(db: Session, volunteer: Volunteer) -> list[VolunteerBadge]:
    """Award newly qualified badges. Already-earned badges are never re-awarded."""
    earned = {b.name for b in volunteer.badges}
    awarded = []
    now = utcnow()
    for name, icon in qualifying_badges(volunteer):
        if name in earned:
            continue
        badge = VolunteerBadge(name=name, icon=icon, earned_at=now)
        volunteer.badges.append(badge)
        awarded.append(badge)
    if awarded:
        db.flush()
        logger.info("Volunteer %s earned: %s", volunteer.id, ", ".join(b.name for b in awarded))
    return awarded
