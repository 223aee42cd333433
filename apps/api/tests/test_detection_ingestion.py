"""Detection ingestion, alert fan-out, and reporting."""

import uuid
from datetime import timedelta

import pytest

from app.core.baby_access import BabyAccessDeniedError
from app.core.websocket import NotificationGateway
from app.db.enums import (
    AlertAction,
    AlertDeliveryStatus,
    DetectionStatus,
    DetectionType,
    SessionStatus,
    Severity,
)
from app.db.models import DetectionAlert
from app.db.types import utcnow
from app.services import detection_service, monitoring_service
from app.services.detection_service import (
    AlertNotFoundError,
    DetectionSessionNotFoundError,
    DetectionValidationError,
    SessionMismatchError,
)
from app.services.monitoring_service import SessionNotActiveError


def _ingest(db, session, user, gateway, **kwargs):
    detection = detection_service.ingest_detection(
        db,
        user_id=user.id,
        baby_id=kwargs.pop("baby_id", session.baby_id),
        session_id=session.id,
        detection_type=kwargs.pop("detection_type", DetectionType.MOTION_DETECTION),
        severity=kwargs.pop("severity", Severity.LOW),
        confidence=kwargs.pop("confidence", 0.7),
        gateway=gateway,
        **kwargs,
    )
    db.commit()
    return detection


# =============================================================================
# Ingestion
# =============================================================================


def test_critical_detection_raises_safety_alert(
    db, active_session, baby, parent, caregiver, gateway
):
    detection = _ingest(
        db,
        active_session,
        parent,
        gateway,
        detection_type=DetectionType.CHOKING,
        severity=Severity.CRITICAL,
        confidence=0.92,
    )
    db.refresh(active_session)

    assert detection.status == DetectionStatus.NEW.value
    assert detection.escalation_level == 0
    assert active_session.total_detections == 1
    assert active_session.safety_incidents == 1

    recipients = {a.sent_to_user_id for a in detection.alerts}
    assert recipients == {parent.id, caregiver.id}
    assert all(a.method == "push" and a.status == "sent" for a in detection.alerts)

    assert len(active_session.alerts) == 1
    session_alert = active_session.alerts[0]
    assert session_alert.alert_type == "safety"
    assert session_alert.severity == "critical"
    assert session_alert.message == "choking detected"
    assert session_alert.details["detection_id"] == str(detection.id)

    events = gateway.of_type("safety-alert")
    assert len(events) == 1
    topic, _, payload = events[0]
    assert topic == str(baby.id)
    assert payload["detection_id"] == detection.id
    assert payload["type"] == "choking"
    assert payload["severity"] == "critical"
    assert payload["message"] == "choking detected with critical severity"
    assert payload["confidence"] == 0.92


def test_low_severity_is_quiet(db, active_session, parent, gateway):
    _ingest(db, active_session, parent, gateway, severity=Severity.LOW)
    db.refresh(active_session)

    assert active_session.total_detections == 1
    assert active_session.safety_incidents == 0
    assert active_session.alerts == []
    assert gateway.events == []


def test_caregiver_without_alert_flag_gets_no_alert(db, make_baby, parent, caregiver, gateway):
    quiet_baby = make_baby([parent], [(caregiver, {"receive_alerts": False})])
    session = monitoring_service.start_session(
        db, baby_id=quiet_baby.id, user_id=parent.id, session_type="play", gateway=gateway
    )
    db.commit()

    detection = _ingest(db, session, caregiver, gateway, severity=Severity.HIGH)

    assert [a.sent_to_user_id for a in detection.alerts] == [parent.id]


def test_motion_levels_are_smoothed(db, active_session, parent, gateway):
    _ingest(db, active_session, parent, gateway, data={"motion_level": 40})
    db.refresh(active_session)
    assert active_session.movement_events == 1
    assert active_session.average_motion_level == pytest.approx(20.0)

    _ingest(db, active_session, parent, gateway, data={"motion_level": 60})
    db.refresh(active_session)
    assert active_session.movement_events == 2
    assert active_session.average_motion_level == pytest.approx(40.0)


def test_sound_levels_are_smoothed(db, active_session, parent, gateway):
    _ingest(
        db,
        active_session,
        parent,
        gateway,
        detection_type=DetectionType.SOUND_DETECTION,
        data={"sound_level": 80, "sound_type": "crying"},
    )
    db.refresh(active_session)

    assert active_session.sound_events == 1
    assert active_session.average_sound_level == pytest.approx(40.0)
    assert active_session.movement_events == 0


def test_missing_level_keeps_average(db, active_session, parent, gateway):
    detection = _ingest(db, active_session, parent, gateway, data={})
    db.refresh(active_session)

    assert detection.id is not None
    assert active_session.movement_events == 1
    assert active_session.average_motion_level == 0.0


def test_non_numeric_level_keeps_average(db, active_session, parent, gateway):
    _ingest(db, active_session, parent, gateway, data={"motion_level": "lots"})
    db.refresh(active_session)

    assert active_session.total_detections == 1
    assert active_session.average_motion_level == 0.0


@pytest.mark.parametrize("level", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_level_keeps_average(db, active_session, parent, gateway, level):
    _ingest(db, active_session, parent, gateway, data={"motion_level": 40})
    _ingest(db, active_session, parent, gateway, data={"motion_level": level})
    db.refresh(active_session)

    assert active_session.movement_events == 2
    assert active_session.average_motion_level == pytest.approx(20.0)


class _FailingConnections:
    """Connection manager whose broadcast always fails."""

    def subscriber_count(self, topic: str) -> int:
        return 1

    async def broadcast(self, topic: str, message: dict) -> int:
        raise ConnectionError("observer went away")


def test_publish_failure_does_not_fail_ingestion(db, active_session, parent):
    failing = NotificationGateway(_FailingConnections())

    detection = _ingest(
        db, active_session, parent, failing, detection_type=DetectionType.FALL_DETECTION,
        severity=Severity.HIGH,
    )
    db.refresh(active_session)

    assert detection.id is not None
    assert active_session.safety_incidents == 1


def test_ingest_into_ended_session_conflicts(db, active_session, parent, gateway):
    monitoring_service.end_session(
        db, session_id=active_session.id, user_id=parent.id, gateway=gateway
    )
    db.commit()

    with pytest.raises(SessionNotActiveError):
        _ingest(db, active_session, parent, gateway)


def test_ingest_session_of_other_baby(db, active_session, make_baby, parent, gateway):
    other = make_baby([parent], name="Sibling")

    with pytest.raises(SessionMismatchError):
        _ingest(db, active_session, parent, gateway, baby_id=other.id)


def test_ingest_unknown_session(db, baby, parent, gateway):
    with pytest.raises(DetectionSessionNotFoundError):
        detection_service.ingest_detection(
            db,
            user_id=parent.id,
            baby_id=baby.id,
            session_id=uuid.uuid4(),
            detection_type=DetectionType.MOTION_DETECTION,
            severity=Severity.LOW,
            confidence=0.5,
            gateway=gateway,
        )


@pytest.mark.parametrize("confidence", [-0.01, 1.01])
def test_ingest_rejects_confidence_out_of_range(db, active_session, parent, gateway, confidence):
    with pytest.raises(DetectionValidationError):
        _ingest(db, active_session, parent, gateway, confidence=confidence)


def test_ingest_by_stranger_is_forbidden(db, active_session, stranger, gateway):
    with pytest.raises(BabyAccessDeniedError):
        _ingest(db, active_session, stranger, gateway)


# =============================================================================
# Alerts
# =============================================================================


def test_acknowledge_alert_marks_read_and_acknowledges(db, active_session, parent, gateway):
    detection = _ingest(db, active_session, parent, gateway, severity=Severity.HIGH)
    alert = next(a for a in detection.alerts if a.sent_to_user_id == parent.id)

    updated = detection_service.acknowledge_alert(
        db,
        detection_id=detection.id,
        alert_id=alert.id,
        action=AlertAction.ACKNOWLEDGED,
        user_id=parent.id,
    )
    db.commit()

    refreshed = db.get(DetectionAlert, alert.id)
    assert refreshed.status == AlertDeliveryStatus.READ.value
    assert refreshed.action == "acknowledged"
    assert refreshed.acknowledged_at is not None
    assert updated.status == DetectionStatus.ACKNOWLEDGED.value
    assert len(detection_service.unread_alerts(updated)) == len(updated.alerts) - 1


def test_dismiss_alert_keeps_status(db, active_session, parent, gateway):
    detection = _ingest(db, active_session, parent, gateway)

    updated = detection_service.acknowledge_alert(
        db,
        detection_id=detection.id,
        alert_id=detection.alerts[0].id,
        action=AlertAction.DISMISSED,
        user_id=parent.id,
    )

    assert updated.status == DetectionStatus.NEW.value


def test_acknowledge_unknown_alert(db, active_session, parent, gateway):
    detection = _ingest(db, active_session, parent, gateway)

    with pytest.raises(AlertNotFoundError):
        detection_service.acknowledge_alert(
            db,
            detection_id=detection.id,
            alert_id=uuid.uuid4(),
            action=AlertAction.ACKNOWLEDGED,
            user_id=parent.id,
        )


def test_acknowledge_session_alert(db, active_session, parent, gateway):
    _ingest(db, active_session, parent, gateway, severity=Severity.CRITICAL)
    db.refresh(active_session)
    alert = active_session.alerts[0]
    assert len(active_session.active_alerts) == 1

    acknowledged = monitoring_service.acknowledge_session_alert(
        db, session_id=active_session.id, alert_id=alert.id, user_id=parent.id
    )
    db.commit()

    assert acknowledged.acknowledged is True
    assert acknowledged.acknowledged_by_user_id == parent.id
    assert active_session.active_alerts == []
    assert active_session.status == SessionStatus.ACTIVE.value


# =============================================================================
# Reporting
# =============================================================================


def test_detection_statistics_rollup(db, active_session, baby, parent, gateway):
    _ingest(db, active_session, parent, gateway, confidence=0.6)
    _ingest(db, active_session, parent, gateway, confidence=0.8)
    _ingest(
        db, active_session, parent, gateway,
        detection_type=DetectionType.CHOKING, severity=Severity.CRITICAL, confidence=0.9,
    )
    old = _ingest(
        db, active_session, parent, gateway,
        detection_type=DetectionType.NO_MOVEMENT, severity=Severity.MEDIUM,
    )
    old.timestamp = utcnow() - timedelta(days=10)
    db.commit()

    rollup = detection_service.detection_statistics(db, baby.id, days=7)

    assert [(r["detection_type"], r["severity"], r["count"]) for r in rollup] == [
        ("motion_detection", "low", 2),
        ("choking", "critical", 1),
    ]
    assert rollup[0]["average_confidence"] == pytest.approx(0.7)


def test_recent_critical_window(db, active_session, baby, parent, gateway):
    fresh = _ingest(
        db, active_session, parent, gateway,
        detection_type=DetectionType.CHOKING, severity=Severity.CRITICAL,
    )
    stale = _ingest(
        db, active_session, parent, gateway,
        detection_type=DetectionType.FALL_DETECTION, severity=Severity.CRITICAL,
    )
    stale.timestamp = utcnow() - timedelta(hours=30)
    db.commit()

    critical = detection_service.recent_critical(db, baby.id, hours=24)

    assert [d.id for d in critical] == [fresh.id]


def test_statistics_summary_requires_view_reports(db, active_session, baby, caregiver):
    with pytest.raises(BabyAccessDeniedError):
        detection_service.get_statistics_summary(db, baby.id, caregiver.id)


def test_statistics_summary_accuracy(db, active_session, baby, parent, gateway):
    first = _ingest(db, active_session, parent, gateway)
    _ingest(db, active_session, parent, gateway)
    first.status = DetectionStatus.FALSE_POSITIVE.value
    first.is_false_positive = True
    first.false_positive_reason = "blanket moved"
    db.commit()

    report = detection_service.get_statistics_summary(db, baby.id, parent.id, days=7)

    assert report["days"] == 7
    assert report["summary"]["total_detections"] == 2
    assert report["summary"]["false_positives"] == 1
    assert report["summary"]["accuracy"] == pytest.approx(0.5)
    assert report["summary"]["critical_detections_last_24h"] == 0


def test_statistics_summary_totals_cover_all_time(db, active_session, baby, parent, gateway):
    old = _ingest(db, active_session, parent, gateway, severity=Severity.MEDIUM)
    old.timestamp = utcnow() - timedelta(days=30)
    old.status = DetectionStatus.FALSE_POSITIVE.value
    old.is_false_positive = True
    old.false_positive_reason = "shadow from the curtain"
    _ingest(db, active_session, parent, gateway)
    db.commit()

    report = detection_service.get_statistics_summary(db, baby.id, parent.id, days=7)

    # Rollup only sees the recent low detection
    assert [(s["severity"], s["count"]) for s in report["statistics"]] == [("low", 1)]
    assert report["summary"]["total_detections"] == 2
    assert report["summary"]["false_positives"] == 1
    assert report["summary"]["accuracy"] == pytest.approx(0.5)


def test_accuracy_without_detections():
    assert detection_service.accuracy(0, 0) == 0.0
    assert detection_service.accuracy(4, 1) == pytest.approx(0.75)


@pytest.mark.parametrize(
    "delta,expected",
    [
        (timedelta(seconds=30), "Just now"),
        (timedelta(minutes=1), "1 minute ago"),
        (timedelta(minutes=5), "5 minutes ago"),
        (timedelta(hours=1, minutes=10), "1 hour ago"),
        (timedelta(hours=3), "3 hours ago"),
        (timedelta(days=2, hours=1), "2 days ago"),
    ],
)
def test_time_since(delta, expected):
    now = utcnow()
    assert detection_service.time_since(now - delta, now=now) == expected
