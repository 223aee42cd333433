"""Monitoring session API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.baby_access import BabyAccessDeniedError, BabyNotFoundError
from app.core.deps import get_current_user, get_db, get_gateway, require_csrf_header
from app.core.websocket import EventOutbox, NotificationGateway
from app.db.enums import DeviceType, SessionStatus
from app.db.models import MonitoringSession
from app.schemas.auth import CurrentUser
from app.schemas.monitoring import (
    ActiveSessionListResponse,
    ActiveSessionRead,
    SessionAlertRead,
    SessionDeviceRead,
    SessionListResponse,
    SessionRead,
    SessionSettingsPatch,
    SessionSettingsRead,
    SessionStart,
    SessionStatistics,
    SessionSummary,
)
from app.services import monitoring_service
from app.services.monitoring_service import (
    SessionAlertNotFoundError,
    SessionAlreadyActiveError,
    SessionNotActiveError,
    SessionNotFoundError,
)

router = APIRouter()


def _session_to_summary(session: MonitoringSession) -> SessionSummary:
    return SessionSummary(
        id=session.id,
        baby_id=session.baby_id,
        started_by_user_id=session.started_by_user_id,
        session_type=session.session_type,
        status=session.status,
        start_time=session.start_time,
        end_time=session.end_time,
        duration_seconds=session.duration_seconds,
        duration_formatted=monitoring_service.format_duration(session.duration_seconds),
        settings=session.settings or {},
        statistics=SessionStatistics(**session.statistics),
        active_alerts=len(session.active_alerts),
        total_detections=len(session.detections),
    )


def _session_to_read(session: MonitoringSession) -> SessionRead:
    summary = _session_to_summary(session)
    return SessionRead(
        **summary.model_dump(),
        detection_ids=[d.id for d in session.detections],
        alerts=[SessionAlertRead.model_validate(a) for a in session.alerts],
        devices=[SessionDeviceRead.model_validate(d) for d in session.devices],
        notes=session.notes,
        created_at=session.created_at,
        updated_at=session.updated_at,
    )


def _device_from_headers(request: Request) -> dict:
    """Starting device as reported by the client (device-id/device-type/platform headers)."""
    device_type = (request.headers.get("device-type") or "").lower()
    if device_type not in {d.value for d in DeviceType}:
        device_type = None
    return {
        "device_id": request.headers.get("device-id"),
        "device_type": device_type,
        "platform": request.headers.get("platform"),
    }


# =============================================================================
# Lifecycle
# =============================================================================


@router.post(
    "/start",
    response_model=SessionRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def start_monitoring(
    data: SessionStart,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: NotificationGateway = Depends(get_gateway),
):
    """
    Start a monitoring session.

    409 with existing_session_id when the baby is already being monitored.
    """
    outbox = EventOutbox(gateway)
    try:
        session = monitoring_service.start_session(
            db,
            baby_id=data.baby_id,
            user_id=user.user_id,
            session_type=data.session_type,
            settings=data.settings.model_dump(mode="json", exclude_none=True) if data.settings else None,
            device=_device_from_headers(request),
            gateway=outbox,
        )
        db.commit()
    except BabyNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except BabyAccessDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except SessionAlreadyActiveError as e:
        return JSONResponse(
            status_code=409,
            content={
                "detail": str(e),
                "existing_session_id": str(e.existing_session_id) if e.existing_session_id else None,
            },
        )
    outbox.flush()
    db.refresh(session)
    return _session_to_read(session)


@router.put(
    "/{session_id}/end",
    response_model=SessionRead,
    dependencies=[Depends(require_csrf_header)],
)
def end_monitoring(
    session_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: NotificationGateway = Depends(get_gateway),
):
    outbox = EventOutbox(gateway)
    try:
        session = monitoring_service.end_session(
            db, session_id=session_id, user_id=user.user_id, gateway=outbox
        )
        db.commit()
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except BabyAccessDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except SessionNotActiveError as e:
        raise HTTPException(status_code=409, detail=str(e))
    outbox.flush()
    return _session_to_read(session)


@router.put(
    "/{session_id}/settings",
    response_model=SessionSettingsRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_session_settings(
    session_id: UUID,
    data: SessionSettingsPatch,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: NotificationGateway = Depends(get_gateway),
):
    """Merge the given settings into the session; omitted keys are kept."""
    outbox = EventOutbox(gateway)
    try:
        session = monitoring_service.update_settings(
            db,
            session_id=session_id,
            user_id=user.user_id,
            patch=data.model_dump(mode="json", exclude_none=True),
            gateway=outbox,
        )
        db.commit()
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except BabyAccessDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    outbox.flush()
    return SessionSettingsRead(session_id=session.id, settings=session.settings)


@router.put(
    "/{session_id}/alerts/{alert_id}/acknowledge",
    response_model=SessionAlertRead,
    dependencies=[Depends(require_csrf_header)],
)
def acknowledge_session_alert(
    session_id: UUID,
    alert_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        alert = monitoring_service.acknowledge_session_alert(
            db, session_id=session_id, alert_id=alert_id, user_id=user.user_id
        )
        db.commit()
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except BabyAccessDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except SessionAlertNotFoundError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return alert


# =============================================================================
# Queries
# =============================================================================


@router.get("/sessions", response_model=SessionListResponse)
def list_sessions(
    baby_id: UUID | None = None,
    session_status: SessionStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List sessions, optionally for one baby or one status, newest first."""
    try:
        sessions, total = monitoring_service.list_sessions(
            db,
            user.user_id,
            baby_id=baby_id,
            status=session_status,
            page=page,
            per_page=per_page,
        )
    except BabyNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except BabyAccessDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))

    pages = (total + per_page - 1) // per_page if per_page > 0 else 0
    return SessionListResponse(
        items=[_session_to_summary(s) for s in sessions],
        total=total,
        page=page,
        per_page=per_page,
        pages=pages,
    )


@router.get("/sessions/{session_id}", response_model=SessionRead)
def get_session(
    session_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        session = monitoring_service.get_session(db, session_id, user.user_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except BabyAccessDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    return _session_to_read(session)


@router.get("/active", response_model=ActiveSessionListResponse)
def list_active_sessions(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Currently active sessions with live duration and latest detections."""
    sessions = monitoring_service.list_active_sessions(db, user.user_id)
    items = [
        ActiveSessionRead(
            id=s.id,
            baby_id=s.baby_id,
            started_by_user_id=s.started_by_user_id,
            session_type=s.session_type,
            start_time=s.start_time,
            duration_seconds=monitoring_service.live_duration_seconds(s),
            settings=s.settings or {},
            active_alerts=len(s.active_alerts),
            recent_detection_ids=monitoring_service.recent_detection_ids(s),
        )
        for s in sessions
    ]
    return ActiveSessionListResponse(items=items, count=len(items))
