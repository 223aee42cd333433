"""Monitoring session lifecycle: start, end, settings, and session alerts.

A baby has at most one active session. The pre-check below gives callers the
existing session id; the partial unique index uq_monitoring_sessions_active_baby
closes the race between two concurrent starts.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.baby_access import accessible_baby_ids, check_baby_access, get_active_baby
from app.core.structured_logging import build_log_context
from app.core.websocket import EventPublisher
from app.db.enums import DEFAULT_SESSION_SETTINGS, DeviceType, SessionStatus, SessionType
from app.db.models import MonitoringSession, SessionAlert, SessionDevice
from app.db.types import utcnow

logger = logging.getLogger(__name__)


class MonitoringServiceError(Exception):
    """Base exception for monitoring service errors."""

    pass


class SessionNotFoundError(MonitoringServiceError):
    """Session does not exist (or its baby has been deactivated)."""

    pass


class SessionAlreadyActiveError(MonitoringServiceError):
    """The baby already has an active session."""

    def __init__(self, existing_session_id: UUID | None):
        self.existing_session_id = existing_session_id
        super().__init__("An active monitoring session already exists for this baby")


class SessionNotActiveError(MonitoringServiceError):
    """Operation requires an active session."""

    pass


class SessionAlertNotFoundError(MonitoringServiceError):
    """Session alert id not present on the session."""

    pass


# Event names published on the baby's topic
SESSION_STARTED = "session-started"
SESSION_ENDED = "session-ended"
SETTINGS_UPDATED = "settings-updated"

RECENT_DETECTIONS_LIMIT = 5

DEFAULT_DEVICE = {
    "device_id": "unknown",
    "device_type": DeviceType.MOBILE.value,
    "platform": "Unknown",
}


def format_duration(seconds: int) -> str:
    """Human readable duration: '45 seconds', '12 minutes', '2h 5m'."""
    if seconds < 60:
        return f"{seconds} seconds"
    if seconds < 3600:
        return f"{seconds // 60} minutes"
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


def live_duration_seconds(session: MonitoringSession, now: datetime | None = None) -> int:
    """Elapsed seconds for an active session, frozen duration otherwise."""
    if session.status != SessionStatus.ACTIVE.value:
        return session.duration_seconds
    now = now or utcnow()
    return max(0, int((now - session.start_time).total_seconds()))


def get_active_session_for_baby(db: Session, baby_id: UUID) -> MonitoringSession | None:
    return db.execute(
        select(MonitoringSession).where(
            MonitoringSession.baby_id == baby_id,
            MonitoringSession.status == SessionStatus.ACTIVE.value,
        )
    ).scalar_one_or_none()


def _load_session(db: Session, session_id: UUID, user_id: UUID) -> MonitoringSession:
    """Load a session and check access to its baby."""
    session = db.get(MonitoringSession, session_id)
    if not session or not session.baby or not session.baby.is_active:
        raise SessionNotFoundError("Monitoring session not found")
    check_baby_access(session.baby, user_id)
    return session


# =============================================================================
# Lifecycle
# =============================================================================


def start_session(
    db: Session,
    *,
    baby_id: UUID,
    user_id: UUID,
    session_type: SessionType,
    gateway: EventPublisher,
    settings: dict | None = None,
    device: dict | None = None,
) -> MonitoringSession:
    """
    Start monitoring a baby.

    Raises:
        BabyNotFoundError: baby missing or deactivated
        BabyAccessDeniedError: caller is neither parent nor caregiver
        SessionAlreadyActiveError: an active session exists (carries its id)
    """
    baby = get_active_baby(db, baby_id)
    check_baby_access(baby, user_id)

    existing = get_active_session_for_baby(db, baby_id)
    if existing:
        raise SessionAlreadyActiveError(existing.id)

    device_info = {**DEFAULT_DEVICE, **{k: v for k, v in (device or {}).items() if v}}
    session = MonitoringSession(
        baby_id=baby.id,
        started_by_user_id=user_id,
        session_type=SessionType(session_type).value,
        status=SessionStatus.ACTIVE.value,
        start_time=utcnow(),
        duration_seconds=0,
        settings={**DEFAULT_SESSION_SETTINGS, **(settings or {})},
    )
    session.devices.append(SessionDevice(**device_info))

    try:
        db.add(session)
        db.flush()
    except IntegrityError:
        # Lost the race against a concurrent start
        db.rollback()
        winner = get_active_session_for_baby(db, baby_id)
        raise SessionAlreadyActiveError(winner.id if winner else None)

    logger.info(
        "Monitoring session started",
        extra=build_log_context(user_id=user_id, baby_id=baby.id, session_id=session.id),
    )
    gateway.publish(
        baby.id,
        SESSION_STARTED,
        {
            "session_id": session.id,
            "baby_id": baby.id,
            "started_by": user_id,
            "session_type": session.session_type,
            "start_time": session.start_time,
        },
    )
    return session


def end_session(
    db: Session,
    *,
    session_id: UUID,
    user_id: UUID,
    gateway: EventPublisher,
) -> MonitoringSession:
    """
    End an active session: freeze duration and detach every device.

    Raises:
        SessionNotFoundError, BabyAccessDeniedError, SessionNotActiveError
    """
    session = _load_session(db, session_id, user_id)
    if session.status != SessionStatus.ACTIVE.value:
        raise SessionNotActiveError("Session is not active")

    now = utcnow()
    session.status = SessionStatus.ENDED.value
    session.end_time = now
    session.duration_seconds = max(0, int((now - session.start_time).total_seconds()))
    for device in session.devices:
        if device.is_active:
            device.is_active = False
            device.left_at = now
    db.flush()

    logger.info(
        "Monitoring session ended",
        extra=build_log_context(user_id=user_id, baby_id=session.baby_id, session_id=session.id),
    )
    gateway.publish(
        session.baby_id,
        SESSION_ENDED,
        {
            "session_id": session.id,
            "baby_id": session.baby_id,
            "end_time": session.end_time,
            "duration": session.duration_seconds,
        },
    )
    return session


def update_settings(
    db: Session,
    *,
    session_id: UUID,
    user_id: UUID,
    patch: dict,
    gateway: EventPublisher,
) -> MonitoringSession:
    """Shallow-merge a settings patch; keys not in the patch are untouched."""
    session = _load_session(db, session_id, user_id)
    # Reassign so the JSON column registers the change
    session.settings = {**(session.settings or {}), **patch}
    db.flush()

    gateway.publish(
        session.baby_id,
        SETTINGS_UPDATED,
        {"session_id": session.id, "settings": session.settings},
    )
    return session


# =============================================================================
# Queries
# =============================================================================


def list_sessions(
    db: Session,
    user_id: UUID,
    baby_id: UUID | None = None,
    status: SessionStatus | None = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[MonitoringSession], int]:
    """Sessions for babies the user can access, newest first."""
    if baby_id is not None:
        baby = get_active_baby(db, baby_id)
        check_baby_access(baby, user_id)
        baby_ids = [baby.id]
    else:
        baby_ids = accessible_baby_ids(db, user_id)
        if not baby_ids:
            return [], 0

    query = db.query(MonitoringSession).filter(MonitoringSession.baby_id.in_(baby_ids))
    if status is not None:
        query = query.filter(MonitoringSession.status == SessionStatus(status).value)
    query = query.order_by(MonitoringSession.start_time.desc())

    total = query.count()
    offset = (page - 1) * per_page
    sessions = query.offset(offset).limit(per_page).all()
    return sessions, total


def get_session(db: Session, session_id: UUID, user_id: UUID) -> MonitoringSession:
    return _load_session(db, session_id, user_id)


def list_active_sessions(db: Session, user_id: UUID) -> list[MonitoringSession]:
    """Active sessions across every baby the user can access."""
    baby_ids = accessible_baby_ids(db, user_id)
    if not baby_ids:
        return []
    return list(
        db.execute(
            select(MonitoringSession)
            .where(
                MonitoringSession.baby_id.in_(baby_ids),
                MonitoringSession.status == SessionStatus.ACTIVE.value,
            )
            .order_by(MonitoringSession.start_time.desc())
        )
        .scalars()
        .all()
    )


def recent_detection_ids(session: MonitoringSession) -> list[UUID]:
    """Ids of the newest detections of a session, newest first."""
    detections = session.detections[-RECENT_DETECTIONS_LIMIT:]
    return [d.id for d in reversed(detections)]


def acknowledge_session_alert(
    db: Session,
    *,
    session_id: UUID,
    alert_id: UUID,
    user_id: UUID,
) -> SessionAlert:
    session = _load_session(db, session_id, user_id)
    alert = next((a for a in session.alerts if a.id == alert_id), None)
    if alert is None:
        raise SessionAlertNotFoundError("Alert not found on this session")

    if not alert.acknowledged:
        alert.acknowledged = True
        alert.acknowledged_by_user_id = user_id
        alert.acknowledged_at = utcnow()
        db.flush()
    return alert
