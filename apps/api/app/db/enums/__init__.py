"""Enum definitions for application constants."""

from app.db.enums.babies import (
    BloodType,
    CaregiverRelationship,
    FeedingType,
    Gender,
    MilestoneType,
)
from app.db.enums.detections import (
    MAX_ESCALATION_LEVEL,
    SAFETY_SEVERITIES,
    TERMINAL_DETECTION_STATUSES,
    AlertAction,
    AlertDeliveryStatus,
    AlertMethod,
    DetectionStatus,
    DetectionType,
    Severity,
)
from app.db.enums.monitoring import (
    DEFAULT_SESSION_SETTINGS,
    DeviceType,
    SessionAlertType,
    SessionStatus,
    SessionType,
    VideoQuality,
)

__all__ = [
    "AlertAction",
    "AlertDeliveryStatus",
    "AlertMethod",
    "BloodType",
    "CaregiverRelationship",
    "DEFAULT_SESSION_SETTINGS",
    "DetectionStatus",
    "DetectionType",
    "DeviceType",
    "FeedingType",
    "Gender",
    "MAX_ESCALATION_LEVEL",
    "MilestoneType",
    "SAFETY_SEVERITIES",
    "SessionAlertType",
    "SessionStatus",
    "SessionType",
    "Severity",
    "TERMINAL_DETECTION_STATUSES",
    "VideoQuality",
]
