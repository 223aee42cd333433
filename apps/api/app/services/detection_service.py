"""Detection ingestion, alert fan-out, and detection reporting.

Ingestion records the outcome of external inference against an active
session, folds it into the session's running statistics, creates one
delivery record per alert recipient and, for high/critical detections,
raises a session-level safety alert and a real-time safety-alert event.
"""

import logging
import math
from datetime import datetime, timedelta
from numbers import Real
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.baby_access import accessible_baby_ids, check_baby_access, get_active_baby
from app.core.config import settings
from app.core.permissions import BabyPermission, alert_recipients
from app.core.structured_logging import build_log_context
from app.core.websocket import EventPublisher
from app.db.enums import (
    SAFETY_SEVERITIES,
    AlertAction,
    AlertDeliveryStatus,
    AlertMethod,
    DetectionStatus,
    DetectionType,
    SessionAlertType,
    SessionStatus,
    Severity,
)
from app.db.models import Detection, DetectionAlert, MonitoringSession, SessionAlert
from app.db.types import utcnow
from app.services.monitoring_service import SessionNotActiveError

logger = logging.getLogger(__name__)


class DetectionServiceError(Exception):
    """Base exception for detection service errors."""

    pass


class DetectionNotFoundError(DetectionServiceError):
    """Detection does not exist (or its baby has been deactivated)."""

    pass


class DetectionSessionNotFoundError(DetectionServiceError):
    """Referenced monitoring session does not exist."""

    pass


class SessionMismatchError(DetectionServiceError):
    """Session does not belong to the baby the detection is for."""

    pass


class DetectionValidationError(DetectionServiceError):
    """Detection input out of range."""

    pass


class AlertNotFoundError(DetectionServiceError):
    """Alert id not present on the detection."""

    pass


SAFETY_ALERT = "safety-alert"

# Detection types feeding the session's running averages: type -> (counter, average, payload key)
_STATISTICS_FOLDS = {
    DetectionType.MOTION_DETECTION.value: ("movement_events", "average_motion_level", "motion_level"),
    DetectionType.SOUND_DETECTION.value: ("sound_events", "average_sound_level", "sound_level"),
}


# =============================================================================
# Derived helpers
# =============================================================================


def accuracy(total: int, false_positives: int) -> float:
    """Share of detections not marked false positive; 0.0 with no detections."""
    if total <= 0:
        return 0.0
    return (total - false_positives) / total


def time_since(timestamp: datetime, now: datetime | None = None) -> str:
    now = now or utcnow()
    minutes = int((now - timestamp).total_seconds() // 60)
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days} day{'s' if days > 1 else ''} ago"
    if hours > 0:
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    if minutes > 0:
        return f"{minutes} minute{'s' if minutes > 1 else ''} ago"
    return "Just now"


def unread_alerts(detection: Detection) -> list[DetectionAlert]:
    return detection.unread_alerts


def _fold_statistics(session: MonitoringSession, detection_type: str, data: dict) -> None:
    """
    Update type-specific counters and the (old + new) / 2 smoothed averages.

    A missing, non-numeric or non-finite level leaves the average untouched.
    """
    fold = _STATISTICS_FOLDS.get(detection_type)
    if fold is None:
        return

    counter, average, key = fold
    setattr(session, counter, (getattr(session, counter) or 0) + 1)

    level = (data or {}).get(key)
    if (
        level is None
        or isinstance(level, bool)
        or not isinstance(level, Real)
        or not math.isfinite(level)
    ):
        logger.info(
            "Skipping %s smoothing: no numeric %s in payload",
            average,
            key,
            extra=build_log_context(session_id=session.id),
        )
        return
    setattr(session, average, ((getattr(session, average) or 0.0) + float(level)) / 2)


# =============================================================================
# Ingestion
# =============================================================================


def ingest_detection(
    db: Session,
    *,
    user_id: UUID,
    baby_id: UUID,
    session_id: UUID,
    detection_type: DetectionType,
    severity: Severity,
    confidence: float,
    gateway: EventPublisher,
    data: dict | None = None,
) -> Detection:
    """
    Record a detection against an active session.

    Raises:
        DetectionValidationError: confidence outside [0, 1]
        BabyNotFoundError / BabyAccessDeniedError
        DetectionSessionNotFoundError: unknown session
        SessionMismatchError: session belongs to another baby
        SessionNotActiveError: session has ended
    """
    if confidence is None or not 0 <= confidence <= 1:
        raise DetectionValidationError("confidence must be between 0 and 1")

    detection_type = DetectionType(detection_type)
    severity = Severity(severity)
    data = data or {}

    baby = get_active_baby(db, baby_id)
    check_baby_access(baby, user_id)

    session = db.get(MonitoringSession, session_id)
    if session is None:
        raise DetectionSessionNotFoundError("Monitoring session not found")
    if session.baby_id != baby.id:
        raise SessionMismatchError("Monitoring session does not belong to this baby")
    if session.status != SessionStatus.ACTIVE.value:
        raise SessionNotActiveError("Monitoring session is not active")

    detection = Detection(
        baby_id=baby.id,
        detection_type=detection_type.value,
        severity=severity.value,
        confidence=confidence,
        timestamp=utcnow(),
        data=data,
        status=DetectionStatus.NEW.value,
        escalation_level=0,
    )
    session.detections.append(detection)
    session.total_detections = (session.total_detections or 0) + 1

    try:
        _fold_statistics(session, detection_type.value, data)
    except Exception:
        logger.warning(
            "Session statistics update failed",
            exc_info=True,
            extra=build_log_context(session_id=session.id),
        )

    is_safety = severity in SAFETY_SEVERITIES
    if is_safety:
        session.safety_incidents = (session.safety_incidents or 0) + 1

    for recipient_id in alert_recipients(baby):
        detection.alerts.append(
            DetectionAlert(
                sent_to_user_id=recipient_id,
                method=AlertMethod.PUSH.value,
                status=AlertDeliveryStatus.SENT.value,
            )
        )

    db.add(detection)
    db.flush()

    if is_safety:
        session.alerts.append(
            SessionAlert(
                alert_type=SessionAlertType.SAFETY.value,
                severity=severity.value,
                message=f"{detection_type.value} detected",
                timestamp=detection.timestamp,
                details={
                    "detection_id": str(detection.id),
                    "confidence": confidence,
                    "detection_type": detection_type.value,
                },
            )
        )
        db.flush()

        gateway.publish(
            baby.id,
            SAFETY_ALERT,
            {
                "detection_id": detection.id,
                "type": detection_type.value,
                "severity": severity.value,
                "message": f"{detection_type.value} detected with {severity.value} severity",
                "timestamp": detection.timestamp,
                "baby_id": baby.id,
                "confidence": confidence,
                "data": data,
            },
        )

    logger.info(
        "Detection ingested: %s/%s",
        detection_type.value,
        severity.value,
        extra=build_log_context(
            user_id=user_id, baby_id=baby.id, session_id=session.id, detection_id=detection.id
        ),
    )
    return detection


# =============================================================================
# Queries
# =============================================================================


def load_detection(db: Session, detection_id: UUID, user_id: UUID) -> Detection:
    """Load a detection and check access to its baby."""
    detection = db.get(Detection, detection_id)
    if not detection or not detection.baby or not detection.baby.is_active:
        raise DetectionNotFoundError("Detection not found")
    check_baby_access(detection.baby, user_id)
    return detection


def get_detection(db: Session, detection_id: UUID, user_id: UUID) -> Detection:
    return load_detection(db, detection_id, user_id)


def list_detections(
    db: Session,
    user_id: UUID,
    baby_id: UUID | None = None,
    session_id: UUID | None = None,
    detection_type: DetectionType | None = None,
    severity: Severity | None = None,
    status: DetectionStatus | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Detection], int]:
    """Detections across accessible babies with filters, newest first."""
    if baby_id is not None:
        baby = get_active_baby(db, baby_id)
        check_baby_access(baby, user_id)
        baby_ids = [baby.id]
    else:
        baby_ids = accessible_baby_ids(db, user_id)
        if not baby_ids:
            return [], 0

    query = db.query(Detection).filter(Detection.baby_id.in_(baby_ids))
    if session_id:
        query = query.filter(Detection.session_id == session_id)
    if detection_type:
        query = query.filter(Detection.detection_type == DetectionType(detection_type).value)
    if severity:
        query = query.filter(Detection.severity == Severity(severity).value)
    if status:
        query = query.filter(Detection.status == DetectionStatus(status).value)
    if start_date:
        query = query.filter(Detection.timestamp >= start_date)
    if end_date:
        query = query.filter(Detection.timestamp <= end_date)
    query = query.order_by(Detection.timestamp.desc())

    total = query.count()
    offset = (page - 1) * per_page
    detections = query.offset(offset).limit(per_page).all()
    return detections, total


def acknowledge_alert(
    db: Session,
    *,
    detection_id: UUID,
    alert_id: UUID,
    action: AlertAction,
    user_id: UUID,
) -> Detection:
    """
    Record a recipient's response to an alert.

    An "acknowledged" response also moves a new detection to acknowledged.
    """
    detection = load_detection(db, detection_id, user_id)
    alert = next((a for a in detection.alerts if a.id == alert_id), None)
    if alert is None:
        raise AlertNotFoundError("Alert not found on this detection")

    action = AlertAction(action)
    alert.status = AlertDeliveryStatus.READ.value
    alert.acknowledged_at = utcnow()
    alert.action = action.value

    if action == AlertAction.ACKNOWLEDGED and detection.status == DetectionStatus.NEW.value:
        detection.status = DetectionStatus.ACKNOWLEDGED.value

    db.flush()
    return detection


# =============================================================================
# Reporting
# =============================================================================


def detection_statistics(
    db: Session,
    baby_id: UUID,
    days: int,
    now: datetime | None = None,
) -> list[dict]:
    """Rollup per (type, severity) over the trailing window, busiest bucket first."""
    since = (now or utcnow()) - timedelta(days=days)
    count = func.count(Detection.id).label("detections")
    rows = db.execute(
        select(
            Detection.detection_type,
            Detection.severity,
            count,
            func.avg(Detection.confidence).label("average_confidence"),
            func.max(Detection.timestamp).label("latest_detection"),
        )
        .where(Detection.baby_id == baby_id, Detection.timestamp >= since)
        .group_by(Detection.detection_type, Detection.severity)
        .order_by(count.desc(), Detection.detection_type, Detection.severity)
    ).all()

    return [
        {
            "detection_type": row.detection_type,
            "severity": row.severity,
            "count": row.detections,
            "average_confidence": float(row.average_confidence or 0.0),
            "latest_detection": row.latest_detection,
        }
        for row in rows
    ]


def recent_critical(
    db: Session,
    baby_id: UUID,
    hours: int,
    now: datetime | None = None,
) -> list[Detection]:
    """Critical detections in the trailing window, newest first."""
    since = (now or utcnow()) - timedelta(hours=hours)
    return list(
        db.execute(
            select(Detection)
            .where(
                Detection.baby_id == baby_id,
                Detection.severity == Severity.CRITICAL.value,
                Detection.timestamp >= since,
            )
            .order_by(Detection.timestamp.desc())
        )
        .scalars()
        .all()
    )


def get_statistics_summary(
    db: Session,
    baby_id: UUID,
    user_id: UUID,
    days: int | None = None,
) -> dict:
    """
    Report for one baby. Requires view_reports.

    The per-type rollup covers the trailing `days`; the summary totals and
    accuracy cover every detection the baby has ever had.
    """
    baby = get_active_baby(db, baby_id)
    check_baby_access(baby, user_id, BabyPermission.VIEW_REPORTS)

    days = days or settings.DETECTION_STATS_DEFAULT_DAYS
    now = utcnow()

    total = db.execute(
        select(func.count(Detection.id)).where(Detection.baby_id == baby.id)
    ).scalar_one()
    false_positives = db.execute(
        select(func.count(Detection.id)).where(
            Detection.baby_id == baby.id,
            Detection.is_false_positive.is_(True),
        )
    ).scalar_one()
    critical = recent_critical(db, baby.id, settings.CRITICAL_LOOKBACK_HOURS, now=now)

    return {
        "days": days,
        "statistics": detection_statistics(db, baby.id, days, now=now),
        "summary": {
            "total_detections": total,
            "false_positives": false_positives,
            "accuracy": accuracy(total, false_positives),
            "critical_detections_last_24h": len(critical),
        },
        "critical_detections": critical,
    }
