"""Expiry sweeper tests."""

import asyncio
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from sos_dispatch.core.alert_policies import ACTIVE, DECLINED, EXPIRED, NO_RESPONSE, NOTIFIED, RESOLVED, RESPONDING
from sos_dispatch.db.base import utcnow
from sos_dispatch.models.alert import Alert
from sos_dispatch.models.alert_timeline import AlertTimelineEntry
from sos_dispatch.models.alert_volunteer import AlertNotifiedVolunteer
from sos_dispatch.services import sweeper_service
from sos_dispatch.services.sweeper_service import (
    expire_stale_alerts,
    purge_old_alerts,
    run_sweep,
    sweeper_loop,
)


def _alert(db, owner, age, status=ACTIVE):
    created = utcnow() - age
    alert = Alert(
        user_id=owner.id,
        latitude=12.97,
        longitude=77.59,
        status=status,
        created_at=created,
        updated_at=created,
    )
    db.add(alert)
    db.flush()
    db.add(AlertTimelineEntry(alert_id=alert.id, action="created", description="Emergency alert created"))
    db.commit()
    return alert.id


def test_sweep_scenario(db, make_user, session_factory):
    owner = make_user()
    stale = _alert(db, owner, timedelta(hours=25))
    old = _alert(db, owner, timedelta(days=8), status=RESOLVED)
    fresh = _alert(db, owner, timedelta(hours=2))

    expired, purged = run_sweep(session_factory)

    assert (expired, purged) == (1, 1)
    db.expire_all()
    assert db.get(Alert, stale).status == EXPIRED
    assert db.get(Alert, old) is None
    assert db.get(Alert, fresh).status == ACTIVE
    assert db.execute(select(AlertTimelineEntry).where(AlertTimelineEntry.alert_id == old)).first() is None


def test_expiry_closes_out_unanswered_volunteers(db, make_user, make_volunteer):
    owner = make_user()
    silent = make_volunteer(latitude=12.97, longitude=77.59)
    declined = make_volunteer(latitude=12.97, longitude=77.59)
    alert_id = _alert(db, owner, timedelta(hours=30))
    db.add(AlertNotifiedVolunteer(alert_id=alert_id, volunteer_id=silent.id, status=NOTIFIED))
    db.add(AlertNotifiedVolunteer(alert_id=alert_id, volunteer_id=declined.id, status=DECLINED))
    db.commit()

    assert expire_stale_alerts(db, utcnow(), timedelta(hours=24)) == 1

    db.expire_all()
    statuses = dict(
        db.execute(
            select(AlertNotifiedVolunteer.volunteer_id, AlertNotifiedVolunteer.status).where(
                AlertNotifiedVolunteer.alert_id == alert_id
            )
        ).all()
    )
    assert statuses == {silent.id: NO_RESPONSE, declined.id: DECLINED}


def test_expiry_adds_one_timeline_entry(db, make_user):
    owner = make_user()
    alert_id = _alert(db, owner, timedelta(hours=30), status=RESPONDING)
    resolved_id = _alert(db, owner, timedelta(hours=30), status=RESOLVED)

    assert expire_stale_alerts(db, utcnow(), timedelta(hours=24)) == 1
    assert expire_stale_alerts(db, utcnow(), timedelta(hours=24)) == 0

    db.expire_all()
    actions = [t.action for t in db.get(Alert, alert_id).timeline]
    assert actions == ["created", "expired"]
    assert db.get(Alert, alert_id).timeline[-1].performed_by is None
    assert db.get(Alert, resolved_id).status == RESOLVED


def test_purge_with_nothing_old(db, make_user):
    _alert(db, make_user(), timedelta(days=1))

    assert purge_old_alerts(db, utcnow(), timedelta(days=7)) == 0


def test_failed_phase_does_not_stop_the_other(db, make_user, session_factory, monkeypatch):
    old = _alert(db, make_user(), timedelta(days=8))

    def broken(*args, **kwargs):
        raise OperationalError("UPDATE", {}, Exception("locked"))

    monkeypatch.setattr(sweeper_service, "expire_stale_alerts", broken)

    assert run_sweep(session_factory) == (0, 1)
    db.expire_all()
    assert db.get(Alert, old) is None


def test_sweeper_loop_runs_at_start_and_stops_on_cancel(monkeypatch):
    calls = []
    monkeypatch.setattr(sweeper_service, "run_sweep", lambda factory: calls.append(factory))

    async def scenario():
        task = asyncio.create_task(sweeper_loop("factory", interval_seconds=3600))
        for _ in range(50):
            if calls:
                break
            await asyncio.sleep(0.01)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        return task

    task = asyncio.run(scenario())

    assert calls == ["factory"]
    assert task.done()
