"""SQLAlchemy ORM models."""

from app.db.models.auth import User
from app.db.models.babies import (
    Baby,
    BabyCaregiver,
    BabyParent,
    EmergencyContact,
    Milestone,
)
from app.db.models.detections import Detection, DetectionAlert, DetectionEscalation
from app.db.models.monitoring import MonitoringSession, SessionAlert, SessionDevice

__all__ = [
    "Baby",
    "BabyCaregiver",
    "BabyParent",
    "Detection",
    "DetectionAlert",
    "DetectionEscalation",
    "EmergencyContact",
    "Milestone",
    "MonitoringSession",
    "SessionAlert",
    "SessionDevice",
    "User",
]
