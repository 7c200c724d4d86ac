"""Periodic expiry of stale alerts and purge of old ones."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from sos_dispatch.core.alert_policies import EXPIRED, STALE_STATUSES
from sos_dispatch.core.config import settings
from sos_dispatch.db.base import utcnow
from sos_dispatch.models.alert import Alert
from sos_dispatch.models.alert_contact import AlertNotifiedContact
from sos_dispatch.models.alert_location import AlertLocationPoint
from sos_dispatch.models.alert_timeline import AlertTimelineEntry
from sos_dispatch.models.alert_volunteer import AlertNotifiedVolunteer
from sos_dispatch.services.alert_service import mark_unanswered

logger = logging.getLogger(__name__)


def expire_stale_alerts(db: Session, now: datetime, stale_after: timedelta) -> int:
    """Mark open alerts older than `stale_after` as expired. Returns the count."""
    cutoff = now - stale_after
    ids = db.execute(
        select(Alert.id).where(Alert.status.in_(STALE_STATUSES), Alert.created_at < cutoff)
    ).scalars().all()

    expired = 0
    for alert_id in ids:
        # Re-checked per row: the alert may have been resolved since the select
        result = db.execute(
            update(Alert)
            .where(Alert.id == alert_id, Alert.status.in_(STALE_STATUSES))
            .values(status=EXPIRED, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            mark_unanswered(db, alert_id)
            db.add(
                AlertTimelineEntry(
                    alert_id=alert_id,
                    action="expired",
                    description="Alert expired without resolution",
                    performed_by=None,
                    timestamp=now,
                )
            )
            expired += 1
    db.commit()
    return expired


def purge_old_alerts(db: Session, now: datetime, retention: timedelta) -> int:
    """Hard-delete alerts older than `retention`, whatever their status."""
    cutoff = now - retention
    ids = db.execute(select(Alert.id).where(Alert.created_at < cutoff)).scalars().all()
    if not ids:
        return 0

    for model in (AlertNotifiedVolunteer, AlertNotifiedContact, AlertTimelineEntry, AlertLocationPoint):
        db.execute(delete(model).where(model.alert_id.in_(ids)).execution_options(synchronize_session=False))
    result = db.execute(delete(Alert).where(Alert.id.in_(ids)).execution_options(synchronize_session=False))
    db.commit()
    return result.rowcount


def run_sweep(session_factory: sessionmaker, now: datetime | None = None) -> tuple[int, int]:
    """One sweep cycle. A failing phase is logged and retried on the next cycle."""
    now = now or utcnow()
    expired = purged = 0
    db = session_factory()
    try:
        try:
            expired = expire_stale_alerts(db, now, timedelta(hours=settings.alert_stale_hours))
            if expired:
                logger.info("Expired %s stale alert(s)", expired)
        except SQLAlchemyError:
            logger.error("Alert expiry failed", exc_info=True)
            db.rollback()

        try:
            purged = purge_old_alerts(db, now, timedelta(days=settings.alert_retention_days))
            if purged:
                logger.info("Purged %s old alert(s)", purged)
        except SQLAlchemyError:
            logger.error("Alert purge failed", exc_info=True)
            db.rollback()
    finally:
        db.close()
    return expired, purged


async def sweeper_loop(session_factory: sessionmaker, interval_seconds: float) -> None:
    """Sweep once at startup, then every `interval_seconds` until cancelled."""
    logger.info("Starting alert sweeper (every %ss)", interval_seconds)
    while True:
        try:
            await asyncio.to_thread(run_sweep, session_factory)
        except asyncio.CancelledError:
            logger.info("Alert sweeper cancelled")
            raise
        except Exception:
            logger.error("Error in alert sweeper", exc_info=True)

        try:
            await asyncio.sleep(interval_seconds)
        except asyncio.CancelledError:
            logger.info("Alert sweeper cancelled")
            break
