"""Detection and alert enums."""

from enum import Enum


class DetectionType(str, Enum):
    """Event kinds produced by the vision/audio models."""

    CHOKING = "choking"
    UNSAFE_SLEEPING = "unsafe_sleeping"
    EXCESSIVE_CRYING = "excessive_crying"
    MOTION_DETECTION = "motion_detection"
    SOUND_DETECTION = "sound_detection"
    TEMPERATURE_ANOMALY = "temperature_anomaly"
    FALL_DETECTION = "fall_detection"
    UNUSUAL_POSITION = "unusual_position"
    FACE_RECOGNITION = "face_recognition"
    NO_MOVEMENT = "no_movement"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SAFETY_SEVERITIES = frozenset({Severity.HIGH, Severity.CRITICAL})


# Escalation ladder ceiling (mirrored by ck_detections_escalation_level)
MAX_ESCALATION_LEVEL = 5


class DetectionStatus(str, Enum):
    NEW = "new"
    ACKNOWLEDGED = "acknowledged"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    FALSE_POSITIVE = "false_positive"


TERMINAL_DETECTION_STATUSES = frozenset(
    {DetectionStatus.RESOLVED, DetectionStatus.FALSE_POSITIVE}
)


class AlertMethod(str, Enum):
    PUSH = "push"
    EMAIL = "email"
    SMS = "sms"
    IN_APP = "in_app"


class AlertDeliveryStatus(str, Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


class AlertAction(str, Enum):
    """Response a recipient records when acknowledging an alert."""

    ACKNOWLEDGED = "acknowledged"
    DISMISSED = "dismissed"
    ESCALATED = "escalated"
    RESOLVED = "resolved"
