"""SQLAlchemy ORM models for monitoring sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.enums import DEFAULT_SESSION_SETTINGS, SessionStatus
from app.db.types import utcnow

if TYPE_CHECKING:
    from app.db.models import Baby, Detection, User


def _default_settings() -> dict:
    return dict(DEFAULT_SESSION_SETTINGS)


class MonitoringSession(Base):
    """
    A bounded monitoring interval for one baby.

    Aggregation root for the detections, session-level alerts, devices and
    running statistics of that interval. At most one active session per baby
    (partial unique index below).
    """

    __tablename__ = "monitoring_sessions"
    __table_args__ = (
        Index("idx_sessions_baby_start", "baby_id", "start_time"),
        Index("idx_sessions_started_by", "started_by_user_id"),
        Index("idx_sessions_status", "status"),
        Index(
            "uq_monitoring_sessions_active_baby",
            "baby_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    baby_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("babies.id", ondelete="CASCADE"), nullable=False
    )
    started_by_user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"), nullable=False
    )
    session_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=SessionStatus.ACTIVE.value, nullable=False
    )
    start_time: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(nullable=True)
    # Seconds; stays 0 until the session ends
    duration_seconds: Mapped[int] = mapped_column(default=0, nullable=False)
    settings: Mapped[dict] = mapped_column(default=_default_settings, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Running statistics
    total_detections: Mapped[int] = mapped_column(default=0, nullable=False)
    safety_incidents: Mapped[int] = mapped_column(default=0, nullable=False)
    movement_events: Mapped[int] = mapped_column(default=0, nullable=False)
    sound_events: Mapped[int] = mapped_column(default=0, nullable=False)
    average_motion_level: Mapped[float] = mapped_column(default=0.0, nullable=False)
    average_sound_level: Mapped[float] = mapped_column(default=0.0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationships
    baby: Mapped["Baby"] = relationship()
    started_by: Mapped["User"] = relationship()
    detections: Mapped[list["Detection"]] = relationship(
        back_populates="session",
        order_by="Detection.timestamp",
    )
    alerts: Mapped[list["SessionAlert"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionAlert.timestamp",
    )
    devices: Mapped[list["SessionDevice"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionDevice.joined_at",
    )

    @property
    def statistics(self) -> dict:
        return {
            "total_detections": self.total_detections,
            "safety_incidents": self.safety_incidents,
            "movement_events": self.movement_events,
            "sound_events": self.sound_events,
            "average_motion_level": self.average_motion_level,
            "average_sound_level": self.average_sound_level,
        }

    @property
    def active_alerts(self) -> list["SessionAlert"]:
        return [a for a in self.alerts if not a.acknowledged]


class SessionDevice(Base):
    """A client device attached to a monitoring session."""

    __tablename__ = "session_devices"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    session_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("monitoring_sessions.id", ondelete="CASCADE"), nullable=False
    )
    device_id: Mapped[str] = mapped_column(String(255), nullable=False)
    device_type: Mapped[str] = mapped_column(String(20), nullable=False)
    platform: Mapped[str] = mapped_column(String(50), nullable=False)
    joined_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    left_at: Mapped[datetime | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    session: Mapped["MonitoringSession"] = relationship(back_populates="devices")


class SessionAlert(Base):
    """Session-level alert (e.g. a safety incident raised by a detection)."""

    __tablename__ = "session_alerts"
    __table_args__ = (Index("idx_session_alerts_session", "session_id", "timestamp"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    session_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("monitoring_sessions.id", ondelete="CASCADE"), nullable=False
    )
    alert_type: Mapped[str] = mapped_column(String(20), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[str] = mapped_column(String(500), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    acknowledged: Mapped[bool] = mapped_column(default=False, nullable=False)
    acknowledged_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    acknowledged_at: Mapped[datetime | None] = mapped_column(nullable=True)
    # {detection_id, confidence, detection_type}
    details: Mapped[dict] = mapped_column(default=dict, nullable=False)

    session: Mapped["MonitoringSession"] = relationship(back_populates="alerts")
