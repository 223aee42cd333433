"""Pydantic schemas for monitoring sessions."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from app.db.enums import SessionStatus, SessionType, VideoQuality


class SessionSettingsPatch(BaseModel):
    """Settings bag; unspecified keys keep their current value."""
    video_quality: VideoQuality | None = None
    audio_enabled: bool | None = None
    night_vision: bool | None = None
    motion_detection: bool | None = None
    sound_detection: bool | None = None
    safety_alerts: bool | None = None
    recording_enabled: bool | None = None


class SessionStart(BaseModel):
    baby_id: UUID
    session_type: SessionType
    settings: SessionSettingsPatch | None = None


class SessionStatistics(BaseModel):
    total_detections: int
    safety_incidents: int
    movement_events: int
    sound_events: int
    average_motion_level: float
    average_sound_level: float


class SessionDeviceRead(BaseModel):
    device_id: str
    device_type: str
    platform: str
    joined_at: datetime
    left_at: datetime | None
    is_active: bool

    model_config = {"from_attributes": True}


class SessionAlertRead(BaseModel):
    id: UUID
    alert_type: str
    severity: str
    message: str
    timestamp: datetime
    acknowledged: bool
    acknowledged_by_user_id: UUID | None
    acknowledged_at: datetime | None
    details: dict

    model_config = {"from_attributes": True}


class SessionSummary(BaseModel):
    """Compact session for list views."""
    id: UUID
    baby_id: UUID
    started_by_user_id: UUID
    session_type: str
    status: SessionStatus
    start_time: datetime
    end_time: datetime | None
    duration_seconds: int
    duration_formatted: str
    settings: dict
    statistics: SessionStatistics
    active_alerts: int
    total_detections: int


class SessionRead(SessionSummary):
    """Full session with embedded alerts, devices, and detection ids."""
    detection_ids: list[UUID]
    alerts: list[SessionAlertRead]
    devices: list[SessionDeviceRead]
    notes: str | None
    created_at: datetime
    updated_at: datetime


class SessionListResponse(BaseModel):
    items: list[SessionSummary]
    total: int
    page: int
    per_page: int
    pages: int


class ActiveSessionRead(BaseModel):
    id: UUID
    baby_id: UUID
    started_by_user_id: UUID
    session_type: str
    start_time: datetime
    duration_seconds: int  # live: now - start
    settings: dict
    active_alerts: int
    recent_detection_ids: list[UUID]


class ActiveSessionListResponse(BaseModel):
    items: list[ActiveSessionRead]
    count: int


class SessionSettingsRead(BaseModel):
    session_id: UUID
    settings: dict
