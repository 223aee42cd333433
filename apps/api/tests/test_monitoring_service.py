"""Monitoring session lifecycle."""

import os
import threading
import uuid
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.baby_access import BabyAccessDeniedError, BabyNotFoundError
from app.db.enums import DEFAULT_SESSION_SETTINGS, SessionStatus, SessionType
from app.db.models import MonitoringSession
from app.services import monitoring_service
from app.services.monitoring_service import (
    SessionAlreadyActiveError,
    SessionNotActiveError,
    SessionNotFoundError,
)


def _start(db, baby, user, gateway, **kwargs):
    session = monitoring_service.start_session(
        db,
        baby_id=baby.id,
        user_id=user.id,
        session_type=kwargs.pop("session_type", SessionType.SLEEP),
        gateway=gateway,
        **kwargs,
    )
    db.commit()
    return session


def test_start_session_defaults_and_event(db, baby, parent, gateway):
    session = _start(
        db,
        baby,
        parent,
        gateway,
        device={"device_id": "phone-1", "device_type": None, "platform": "iOS"},
    )

    assert session.status == SessionStatus.ACTIVE.value
    assert session.duration_seconds == 0
    assert session.settings == DEFAULT_SESSION_SETTINGS
    assert [(d.device_id, d.device_type, d.platform) for d in session.devices] == [
        ("phone-1", "mobile", "iOS")
    ]

    events = gateway.of_type("session-started")
    assert len(events) == 1
    topic, _, payload = events[0]
    assert topic == str(baby.id)
    assert payload["session_id"] == session.id
    assert payload["started_by"] == parent.id
    assert payload["session_type"] == "sleep"


def test_start_session_merges_settings(db, baby, parent, gateway):
    session = _start(db, baby, parent, gateway, settings={"night_vision": True})

    assert session.settings["night_vision"] is True
    assert session.settings["video_quality"] == "medium"


def test_caregiver_can_start_session(db, baby, caregiver, gateway):
    session = _start(db, baby, caregiver, gateway)

    assert session.started_by_user_id == caregiver.id


def test_start_twice_conflicts_with_existing_id(db, baby, parent, gateway):
    first = _start(db, baby, parent, gateway)

    with pytest.raises(SessionAlreadyActiveError) as exc:
        _start(db, baby, parent, gateway)

    assert exc.value.existing_session_id == first.id


def test_start_requires_access(db, baby, stranger, gateway):
    with pytest.raises(BabyAccessDeniedError):
        _start(db, baby, stranger, gateway)
    assert gateway.events == []


def test_start_on_deactivated_baby_is_not_found(db, baby, parent, gateway):
    baby.is_active = False
    db.commit()

    with pytest.raises(BabyNotFoundError):
        _start(db, baby, parent, gateway)


def test_active_session_index_rejects_second_active_row(db, baby, parent):
    for _ in range(2):
        db.add(
            MonitoringSession(
                baby_id=baby.id,
                started_by_user_id=parent.id,
                session_type=SessionType.PLAY.value,
            )
        )
    with pytest.raises(IntegrityError):
        db.flush()
    db.rollback()


def test_lost_race_is_reported_as_already_active(db, baby, parent, gateway, monkeypatch):
    """The pre-check misses a concurrent insert; the unique index catches it."""
    winner = _start(db, baby, parent, gateway)
    real_lookup = monitoring_service.get_active_session_for_baby
    calls = {"n": 0}

    def stale_lookup(db_, baby_id):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return real_lookup(db_, baby_id)

    monkeypatch.setattr(monitoring_service, "get_active_session_for_baby", stale_lookup)

    with pytest.raises(SessionAlreadyActiveError) as exc:
        _start(db, baby, parent, gateway)

    assert exc.value.existing_session_id == winner.id


def test_start_after_end_is_allowed(db, baby, parent, gateway):
    first = _start(db, baby, parent, gateway)
    monitoring_service.end_session(db, session_id=first.id, user_id=parent.id, gateway=gateway)
    db.commit()

    second = _start(db, baby, parent, gateway)

    assert second.id != first.id


def test_end_session_floors_duration_and_detaches_devices(db, baby, parent, gateway):
    session = _start(db, baby, parent, gateway)
    # Started 90.7 seconds ago
    session.start_time = session.start_time - timedelta(seconds=90, milliseconds=700)
    db.commit()

    ended = monitoring_service.end_session(
        db, session_id=session.id, user_id=parent.id, gateway=gateway
    )
    db.commit()

    assert ended.status == SessionStatus.ENDED.value
    elapsed = (ended.end_time - ended.start_time).total_seconds()
    assert ended.duration_seconds == int(elapsed)
    assert ended.duration_seconds >= 90
    assert all(not d.is_active for d in ended.devices)
    assert all(d.left_at == ended.end_time for d in ended.devices)

    (_, _, payload), = gateway.of_type("session-ended")
    assert payload["duration"] == ended.duration_seconds
    assert payload["baby_id"] == baby.id


def test_end_twice_is_not_active(db, baby, parent, gateway):
    session = _start(db, baby, parent, gateway)
    monitoring_service.end_session(db, session_id=session.id, user_id=parent.id, gateway=gateway)
    db.commit()

    with pytest.raises(SessionNotActiveError):
        monitoring_service.end_session(
            db, session_id=session.id, user_id=parent.id, gateway=gateway
        )


def test_end_by_stranger_is_forbidden(db, active_session, stranger, gateway):
    with pytest.raises(BabyAccessDeniedError):
        monitoring_service.end_session(
            db, session_id=active_session.id, user_id=stranger.id, gateway=gateway
        )


def test_end_unknown_session(db, parent, gateway):
    with pytest.raises(SessionNotFoundError):
        monitoring_service.end_session(
            db, session_id=uuid.uuid4(), user_id=parent.id, gateway=gateway
        )


def test_update_settings_is_shallow_merge(db, active_session, parent, gateway):
    updated = monitoring_service.update_settings(
        db,
        session_id=active_session.id,
        user_id=parent.id,
        patch={"video_quality": "hd", "audio_enabled": False},
        gateway=gateway,
    )
    db.commit()
    db.refresh(updated)

    assert updated.settings["video_quality"] == "hd"
    assert updated.settings["audio_enabled"] is False
    assert updated.settings["motion_detection"] is True

    (_, _, payload), = gateway.of_type("settings-updated")
    assert payload["settings"] == updated.settings


def test_list_sessions_scoped_to_accessible_babies(db, make_baby, parent, stranger, gateway):
    mine = make_baby([parent], name="Mine")
    theirs = make_baby([stranger], name="Theirs")
    _start(db, mine, parent, gateway)
    _start(db, theirs, stranger, gateway)

    sessions, total = monitoring_service.list_sessions(db, parent.id)

    assert total == 1
    assert sessions[0].baby_id == mine.id

    with pytest.raises(BabyAccessDeniedError):
        monitoring_service.list_sessions(db, parent.id, baby_id=theirs.id)


def test_list_sessions_status_filter(db, baby, parent, gateway):
    first = _start(db, baby, parent, gateway)
    monitoring_service.end_session(db, session_id=first.id, user_id=parent.id, gateway=gateway)
    db.commit()
    _start(db, baby, parent, gateway)

    ended, total = monitoring_service.list_sessions(db, parent.id, status=SessionStatus.ENDED)

    assert total == 1
    assert ended[0].id == first.id


def test_list_active_sessions_and_live_duration(db, active_session, parent, stranger):
    active = monitoring_service.list_active_sessions(db, parent.id)

    assert [s.id for s in active] == [active_session.id]
    assert monitoring_service.list_active_sessions(db, stranger.id) == []

    later = active_session.start_time + timedelta(minutes=3, seconds=5)
    assert monitoring_service.live_duration_seconds(active_session, now=later) == 185


@pytest.mark.parametrize(
    "seconds,expected",
    [(0, "0 seconds"), (59, "59 seconds"), (60, "1 minutes"), (3599, "59 minutes"), (7500, "2h 5m")],
)
def test_format_duration(seconds, expected):
    assert monitoring_service.format_duration(seconds) == expected


@pytest.mark.skipif(
    not os.environ.get("DATABASE_URL", "").startswith("postgresql"),
    reason="concurrent starts need a server database",
)
def test_concurrent_starts_yield_one_active_session(db, baby, parent, gateway):
    from app.db.session import SessionLocal

    barrier = threading.Barrier(2)
    outcomes: list[str] = []

    def worker():
        local = SessionLocal()
        try:
            barrier.wait()
            monitoring_service.start_session(
                local,
                baby_id=baby.id,
                user_id=parent.id,
                session_type=SessionType.GENERAL,
                gateway=gateway,
            )
            local.commit()
            outcomes.append("started")
        except SessionAlreadyActiveError:
            outcomes.append("conflict")
        finally:
            local.close()

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["conflict", "started"]
