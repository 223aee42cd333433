"""Detection review: status transitions, escalation, and model feedback.

Status only moves forward:

    new           -> acknowledged | investigating | resolved | false_positive
    acknowledged  -> investigating | resolved | false_positive
    investigating -> resolved | false_positive
    resolved, false_positive: terminal

Resolving an already-resolved detection is allowed and overwrites the
resolver, timestamp and notes. Escalation is independent of status and never
decreases.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.structured_logging import build_log_context
from app.db.enums import MAX_ESCALATION_LEVEL, DetectionStatus
from app.db.models import Detection, DetectionEscalation, User
from app.db.types import utcnow
from app.services.detection_service import load_detection

logger = logging.getLogger(__name__)


class DetectionReviewError(Exception):
    """Base exception for detection review errors."""

    pass


class DetectionStatusError(DetectionReviewError):
    """Requested status change is not allowed from the current status."""

    pass


class FalsePositiveReasonRequiredError(DetectionReviewError):
    """A false-positive mark needs a reason."""

    pass


class EscalationTargetNotFoundError(DetectionReviewError):
    """Escalation target user does not exist or is inactive."""

    pass


ALLOWED_TRANSITIONS: dict[DetectionStatus, frozenset[DetectionStatus]] = {
    DetectionStatus.NEW: frozenset(
        {
            DetectionStatus.ACKNOWLEDGED,
            DetectionStatus.INVESTIGATING,
            DetectionStatus.RESOLVED,
            DetectionStatus.FALSE_POSITIVE,
        }
    ),
    DetectionStatus.ACKNOWLEDGED: frozenset(
        {
            DetectionStatus.INVESTIGATING,
            DetectionStatus.RESOLVED,
            DetectionStatus.FALSE_POSITIVE,
        }
    ),
    DetectionStatus.INVESTIGATING: frozenset(
        {DetectionStatus.RESOLVED, DetectionStatus.FALSE_POSITIVE}
    ),
    DetectionStatus.RESOLVED: frozenset({DetectionStatus.RESOLVED}),
    DetectionStatus.FALSE_POSITIVE: frozenset(),
}


def can_transition(current: DetectionStatus | str, target: DetectionStatus | str) -> bool:
    return DetectionStatus(target) in ALLOWED_TRANSITIONS[DetectionStatus(current)]


def _transition(detection: Detection, target: DetectionStatus) -> None:
    if not can_transition(detection.status, target):
        raise DetectionStatusError(
            f"Cannot change detection status from {detection.status} to {target.value}"
        )
    detection.status = target.value


def start_investigation(db: Session, detection_id: UUID, user_id: UUID) -> Detection:
    detection = load_detection(db, detection_id, user_id)
    _transition(detection, DetectionStatus.INVESTIGATING)
    db.flush()
    return detection


def resolve(
    db: Session,
    detection_id: UUID,
    user_id: UUID,
    notes: str | None = None,
) -> Detection:
    """Mark resolved and record who resolved it, when, and why."""
    detection = load_detection(db, detection_id, user_id)
    _transition(detection, DetectionStatus.RESOLVED)
    detection.resolved_by_user_id = user_id
    detection.resolved_at = utcnow()
    detection.resolution_notes = notes
    db.flush()

    logger.info(
        "Detection resolved",
        extra=build_log_context(
            user_id=user_id, baby_id=detection.baby_id, detection_id=detection.id
        ),
    )
    return detection


def mark_false_positive(
    db: Session,
    detection_id: UUID,
    user_id: UUID,
    reason: str,
) -> Detection:
    if not reason or not reason.strip():
        raise FalsePositiveReasonRequiredError("A reason is required to mark a false positive")

    detection = load_detection(db, detection_id, user_id)
    _transition(detection, DetectionStatus.FALSE_POSITIVE)
    detection.is_false_positive = True
    detection.false_positive_reason = reason.strip()
    detection.resolved_by_user_id = user_id
    detection.resolved_at = utcnow()
    db.flush()

    logger.info(
        "Detection marked false positive",
        extra=build_log_context(
            user_id=user_id, baby_id=detection.baby_id, detection_id=detection.id
        ),
    )
    return detection


def escalate(
    db: Session,
    detection_id: UUID,
    user_id: UUID,
    to_user_id: UUID,
    reason: str | None = None,
) -> Detection:
    """
    Forward a detection to another user.

    The level is clamped at MAX_ESCALATION_LEVEL; the history entry is
    appended even once the ceiling is reached.
    """
    detection = load_detection(db, detection_id, user_id)

    target = db.get(User, to_user_id)
    if not target or not target.is_active:
        raise EscalationTargetNotFoundError("Escalation target user not found")

    detection.escalation_level = min(detection.escalation_level + 1, MAX_ESCALATION_LEVEL)
    detection.escalations.append(
        DetectionEscalation(user_id=target.id, escalated_at=utcnow(), reason=reason)
    )
    db.flush()

    logger.info(
        "Detection escalated to level %d",
        detection.escalation_level,
        extra=build_log_context(
            user_id=user_id, baby_id=detection.baby_id, detection_id=detection.id
        ),
    )
    return detection


def submit_feedback(
    db: Session,
    detection_id: UUID,
    user_id: UUID,
    is_accurate: bool,
    comments: str | None = None,
) -> Detection:
    """Record whether the model got this detection right."""
    detection = load_detection(db, detection_id, user_id)
    detection.feedback_is_accurate = is_accurate
    detection.feedback_comments = comments
    detection.feedback_by_user_id = user_id
    detection.feedback_at = utcnow()
    db.flush()
    return detection
