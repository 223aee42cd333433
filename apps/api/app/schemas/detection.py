"""Pydantic schemas for detections, alerts, and escalation."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from app.db.enums import AlertAction, DetectionStatus, DetectionType, Severity


class MotionArea(BaseModel):
    x: float
    y: float
    width: float
    height: float


class DeviceInfo(BaseModel):
    camera: str | None = None
    resolution: str | None = None
    fps: float | None = None


class DetectionData(BaseModel):
    """Type-specific payload produced by the inference service."""
    image_url: str | None = None
    video_url: str | None = None
    thumbnail_url: str | None = None
    motion_level: float | None = Field(None, ge=0, le=100)
    motion_area: MotionArea | None = None
    sound_level: float | None = Field(None, ge=0, le=100)
    sound_type: Literal["crying", "coughing", "choking", "normal", "silence", "other"] | None = None
    body_position: Literal["back", "stomach", "side", "sitting", "unknown"] | None = None
    head_position: Literal["up", "down", "left", "right", "unknown"] | None = None
    heart_rate: float | None = None
    breathing_rate: float | None = None
    body_temperature: float | None = None
    raw_data: Any = None
    processing_time: float | None = None  # ms
    model_version: str | None = None
    device_info: DeviceInfo | None = None


class DetectionCreate(BaseModel):
    baby_id: UUID
    session_id: UUID
    detection_type: DetectionType
    severity: Severity
    confidence: float = Field(..., ge=0, le=1)
    data: DetectionData | None = None


class AcknowledgeRequest(BaseModel):
    alert_id: UUID
    action: AlertAction


class ResolveRequest(BaseModel):
    notes: str | None = Field(None, max_length=2000)


class FalsePositiveRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class EscalateRequest(BaseModel):
    to_user_id: UUID
    reason: str | None = Field(None, max_length=2000)


class FeedbackRequest(BaseModel):
    is_accurate: bool
    comments: str | None = Field(None, max_length=2000)


class DetectionAlertRead(BaseModel):
    id: UUID
    sent_to_user_id: UUID
    sent_at: datetime
    method: str
    status: str
    acknowledged_at: datetime | None
    action: str | None

    model_config = {"from_attributes": True}


class EscalationRead(BaseModel):
    user_id: UUID
    escalated_at: datetime
    reason: str | None

    model_config = {"from_attributes": True}


class DetectionListItem(BaseModel):
    id: UUID
    baby_id: UUID
    session_id: UUID
    detection_type: DetectionType
    severity: Severity
    confidence: float
    timestamp: datetime
    time_since: str
    status: DetectionStatus
    data: dict
    unread_alerts: int
    resolved_by_user_id: UUID | None
    resolved_at: datetime | None
    is_false_positive: bool


class DetectionRead(DetectionListItem):
    alerts: list[DetectionAlertRead]
    resolution_notes: str | None
    false_positive_reason: str | None
    feedback_is_accurate: bool | None
    feedback_comments: str | None
    feedback_by_user_id: UUID | None
    feedback_at: datetime | None
    escalation_level: int
    escalations: list[EscalationRead]
    created_at: datetime
    updated_at: datetime


class DetectionListResponse(BaseModel):
    items: list[DetectionListItem]
    total: int
    page: int
    per_page: int
    pages: int


class DetectionStatisticsBucket(BaseModel):
    detection_type: str
    severity: str
    count: int
    average_confidence: float
    latest_detection: datetime


class CriticalDetectionRead(BaseModel):
    id: UUID
    detection_type: str
    timestamp: datetime
    confidence: float
    status: str


class DetectionStatisticsSummary(BaseModel):
    total_detections: int
    false_positives: int
    accuracy: float  # (total - false positives) / total
    critical_detections_last_24h: int


class DetectionStatisticsResponse(BaseModel):
    days: int
    statistics: list[DetectionStatisticsBucket]
    summary: DetectionStatisticsSummary
    critical_detections: list[CriticalDetectionRead]
