"""Monitoring session enums."""

from enum import Enum


class SessionType(str, Enum):
    SLEEP = "sleep"
    PLAY = "play"
    FEEDING = "feeding"
    GENERAL = "general"


class SessionStatus(str, Enum):
    """
    Monitoring session lifecycle.

    active -> ended is the only transition exposed by the API.
    paused is reserved; nothing moves a session into or out of it.
    """

    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"


class VideoQuality(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    HD = "hd"


class DeviceType(str, Enum):
    MOBILE = "mobile"
    TABLET = "tablet"
    WEB = "web"
    CAMERA = "camera"


class SessionAlertType(str, Enum):
    SAFETY = "safety"
    HEALTH = "health"
    MOVEMENT = "movement"
    SOUND = "sound"
    TECHNICAL = "technical"


DEFAULT_SESSION_SETTINGS: dict = {
    "video_quality": VideoQuality.MEDIUM.value,
    "audio_enabled": True,
    "night_vision": False,
    "motion_detection": True,
    "sound_detection": True,
    "safety_alerts": True,
    "recording_enabled": False,
}
