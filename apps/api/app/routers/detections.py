"""Detection API endpoints: ingestion, review, and per-baby statistics."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.core.baby_access import BabyAccessDeniedError, BabyNotFoundError
from app.core.deps import get_current_user, get_db, get_gateway, require_csrf_header
from app.core.rate_limit import DETECTIONS_LIMIT, limiter
from app.core.websocket import EventOutbox, NotificationGateway
from app.db.enums import DetectionStatus, DetectionType, Severity
from app.db.models import Detection
from app.schemas.auth import CurrentUser
from app.schemas.detection import (
    AcknowledgeRequest,
    CriticalDetectionRead,
    DetectionAlertRead,
    DetectionCreate,
    DetectionListItem,
    DetectionListResponse,
    DetectionRead,
    DetectionStatisticsResponse,
    EscalateRequest,
    EscalationRead,
    FalsePositiveRequest,
    FeedbackRequest,
    ResolveRequest,
)
from app.services import detection_review_service, detection_service
from app.services.detection_review_service import (
    DetectionStatusError,
    EscalationTargetNotFoundError,
    FalsePositiveReasonRequiredError,
)
from app.services.detection_service import (
    AlertNotFoundError,
    DetectionNotFoundError,
    DetectionSessionNotFoundError,
    DetectionValidationError,
    SessionMismatchError,
)
from app.services.monitoring_service import SessionNotActiveError

router = APIRouter()


def _detection_to_list_item(detection: Detection) -> DetectionListItem:
    return DetectionListItem(
        id=detection.id,
        baby_id=detection.baby_id,
        session_id=detection.session_id,
        detection_type=detection.detection_type,
        severity=detection.severity,
        confidence=detection.confidence,
        timestamp=detection.timestamp,
        time_since=detection_service.time_since(detection.timestamp),
        status=detection.status,
        data=detection.data or {},
        unread_alerts=len(detection_service.unread_alerts(detection)),
        resolved_by_user_id=detection.resolved_by_user_id,
        resolved_at=detection.resolved_at,
        is_false_positive=detection.is_false_positive,
    )


def _detection_to_read(detection: Detection) -> DetectionRead:
    item = _detection_to_list_item(detection)
    return DetectionRead(
        **item.model_dump(),
        alerts=[DetectionAlertRead.model_validate(a) for a in detection.alerts],
        resolution_notes=detection.resolution_notes,
        false_positive_reason=detection.false_positive_reason,
        feedback_is_accurate=detection.feedback_is_accurate,
        feedback_comments=detection.feedback_comments,
        feedback_by_user_id=detection.feedback_by_user_id,
        feedback_at=detection.feedback_at,
        escalation_level=detection.escalation_level,
        escalations=[EscalationRead.model_validate(e) for e in detection.escalations],
        created_at=detection.created_at,
        updated_at=detection.updated_at,
    )


def _raise_for(e: Exception):
    """Map detection service errors to HTTP responses."""
    if isinstance(
        e,
        (
            BabyNotFoundError,
            DetectionNotFoundError,
            DetectionSessionNotFoundError,
            EscalationTargetNotFoundError,
        ),
    ):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, BabyAccessDeniedError):
        raise HTTPException(status_code=403, detail=str(e))
    if isinstance(
        e, (DetectionValidationError, SessionMismatchError, FalsePositiveReasonRequiredError)
    ):
        raise HTTPException(status_code=400, detail=str(e))
    if isinstance(e, (SessionNotActiveError, AlertNotFoundError, DetectionStatusError)):
        raise HTTPException(status_code=409, detail=str(e))
    raise e


_REVIEW_ERRORS = (
    DetectionNotFoundError,
    BabyAccessDeniedError,
    DetectionStatusError,
)


# =============================================================================
# Ingestion & queries
# =============================================================================


@router.post(
    "",
    response_model=DetectionRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit(DETECTIONS_LIMIT)
def create_detection(
    request: Request,
    data: DetectionCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: NotificationGateway = Depends(get_gateway),
):
    """Record a detection produced by the inference service."""
    outbox = EventOutbox(gateway)
    try:
        detection = detection_service.ingest_detection(
            db,
            user_id=user.user_id,
            baby_id=data.baby_id,
            session_id=data.session_id,
            detection_type=data.detection_type,
            severity=data.severity,
            confidence=data.confidence,
            data=data.data.model_dump(mode="json", exclude_none=True) if data.data else {},
            gateway=outbox,
        )
        db.commit()
    except (
        BabyNotFoundError,
        BabyAccessDeniedError,
        DetectionSessionNotFoundError,
        SessionMismatchError,
        SessionNotActiveError,
        DetectionValidationError,
    ) as e:
        _raise_for(e)
    outbox.flush()
    db.refresh(detection)
    return _detection_to_read(detection)


@router.get("", response_model=DetectionListResponse)
def list_detections(
    baby_id: UUID | None = None,
    session_id: UUID | None = None,
    detection_type: DetectionType | None = None,
    severity: Severity | None = None,
    detection_status: DetectionStatus | None = Query(None, alias="status"),
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List detections with filters and pagination, newest first."""
    try:
        detections, total = detection_service.list_detections(
            db,
            user.user_id,
            baby_id=baby_id,
            session_id=session_id,
            detection_type=detection_type,
            severity=severity,
            status=detection_status,
            start_date=start_date,
            end_date=end_date,
            page=page,
            per_page=per_page,
        )
    except (BabyNotFoundError, BabyAccessDeniedError) as e:
        _raise_for(e)

    pages = (total + per_page - 1) // per_page if per_page > 0 else 0
    return DetectionListResponse(
        items=[_detection_to_list_item(d) for d in detections],
        total=total,
        page=page,
        per_page=per_page,
        pages=pages,
    )


@router.get("/statistics/{baby_id}", response_model=DetectionStatisticsResponse)
def get_detection_statistics(
    baby_id: UUID,
    days: int | None = Query(None, ge=1, le=365),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Per type/severity rollup, accuracy, and recent critical detections (view_reports)."""
    try:
        report = detection_service.get_statistics_summary(db, baby_id, user.user_id, days)
    except (BabyNotFoundError, BabyAccessDeniedError) as e:
        _raise_for(e)

    return DetectionStatisticsResponse(
        days=report["days"],
        statistics=report["statistics"],
        summary=report["summary"],
        critical_detections=[
            CriticalDetectionRead(
                id=d.id,
                detection_type=d.detection_type,
                timestamp=d.timestamp,
                confidence=d.confidence,
                status=d.status,
            )
            for d in report["critical_detections"]
        ],
    )


@router.get("/{detection_id}", response_model=DetectionRead)
def get_detection(
    detection_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        detection = detection_service.get_detection(db, detection_id, user.user_id)
    except (DetectionNotFoundError, BabyAccessDeniedError) as e:
        _raise_for(e)
    return _detection_to_read(detection)


# =============================================================================
# Review
# =============================================================================


@router.put(
    "/{detection_id}/acknowledge",
    response_model=DetectionRead,
    dependencies=[Depends(require_csrf_header)],
)
def acknowledge_detection_alert(
    detection_id: UUID,
    data: AcknowledgeRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Record the caller's response to one of the detection's alerts."""
    try:
        detection = detection_service.acknowledge_alert(
            db,
            detection_id=detection_id,
            alert_id=data.alert_id,
            action=data.action,
            user_id=user.user_id,
        )
        db.commit()
    except (DetectionNotFoundError, BabyAccessDeniedError, AlertNotFoundError) as e:
        _raise_for(e)
    return _detection_to_read(detection)


@router.put(
    "/{detection_id}/investigate",
    response_model=DetectionRead,
    dependencies=[Depends(require_csrf_header)],
)
def investigate_detection(
    detection_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        detection = detection_review_service.start_investigation(db, detection_id, user.user_id)
        db.commit()
    except _REVIEW_ERRORS as e:
        _raise_for(e)
    return _detection_to_read(detection)


@router.put(
    "/{detection_id}/resolve",
    response_model=DetectionRead,
    dependencies=[Depends(require_csrf_header)],
)
def resolve_detection(
    detection_id: UUID,
    data: ResolveRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        detection = detection_review_service.resolve(
            db, detection_id, user.user_id, notes=data.notes
        )
        db.commit()
    except _REVIEW_ERRORS as e:
        _raise_for(e)
    return _detection_to_read(detection)


@router.put(
    "/{detection_id}/false-positive",
    response_model=DetectionRead,
    dependencies=[Depends(require_csrf_header)],
)
def mark_false_positive(
    detection_id: UUID,
    data: FalsePositiveRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        detection = detection_review_service.mark_false_positive(
            db, detection_id, user.user_id, reason=data.reason
        )
        db.commit()
    except _REVIEW_ERRORS + (FalsePositiveReasonRequiredError,) as e:
        _raise_for(e)
    return _detection_to_read(detection)


@router.put(
    "/{detection_id}/escalate",
    response_model=DetectionRead,
    dependencies=[Depends(require_csrf_header)],
)
def escalate_detection(
    detection_id: UUID,
    data: EscalateRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        detection = detection_review_service.escalate(
            db, detection_id, user.user_id, to_user_id=data.to_user_id, reason=data.reason
        )
        db.commit()
    except _REVIEW_ERRORS + (EscalationTargetNotFoundError,) as e:
        _raise_for(e)
    return _detection_to_read(detection)


@router.put(
    "/{detection_id}/feedback",
    response_model=DetectionRead,
    dependencies=[Depends(require_csrf_header)],
)
def submit_feedback(
    detection_id: UUID,
    data: FeedbackRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Tell the model team whether this detection was accurate."""
    try:
        detection = detection_review_service.submit_feedback(
            db,
            detection_id,
            user.user_id,
            is_accurate=data.is_accurate,
            comments=data.comments,
        )
        db.commit()
    except (DetectionNotFoundError, BabyAccessDeniedError) as e:
        _raise_for(e)
    return _detection_to_read(detection)
