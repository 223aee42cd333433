"""SQLAlchemy ORM models for AI detections and their alert trail."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.enums import AlertDeliveryStatus, DetectionStatus
from app.db.types import utcnow

if TYPE_CHECKING:
    from app.db.models import Baby, MonitoringSession


class Detection(Base):
    """
    A discrete AI-classified event recorded during a monitoring session.

    Never deleted (audit trail). status and escalation_level only move
    forward; see detection_review_service for the transition table.
    """

    __tablename__ = "detections"
    __table_args__ = (
        Index("idx_detections_baby_ts", "baby_id", "timestamp"),
        Index("idx_detections_session", "session_id"),
        Index("idx_detections_baby_type_ts", "baby_id", "detection_type", "timestamp"),
        Index("idx_detections_baby_status_ts", "baby_id", "status", "timestamp"),
        Index("idx_detections_severity", "severity"),
        CheckConstraint(
            "confidence >= 0 AND confidence <= 1", name="ck_detections_confidence"
        ),
        CheckConstraint(
            "escalation_level >= 0 AND escalation_level <= 5",
            name="ck_detections_escalation_level",
        ),
        CheckConstraint(
            "NOT is_false_positive OR status = 'false_positive'",
            name="ck_detections_false_positive_status",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    baby_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("babies.id", ondelete="CASCADE"), nullable=False
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("monitoring_sessions.id", ondelete="CASCADE"), nullable=False
    )
    detection_type: Mapped[str] = mapped_column(String(30), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    confidence: Mapped[float] = mapped_column(nullable=False)
    timestamp: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    # Type-specific payload (motion_level, sound_level, body_position, image_url, ...)
    data: Mapped[dict] = mapped_column(default=dict, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), default=DetectionStatus.NEW.value, nullable=False
    )
    resolved_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_false_positive: Mapped[bool] = mapped_column(default=False, nullable=False)
    false_positive_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Model feedback
    feedback_is_accurate: Mapped[bool | None] = mapped_column(nullable=True)
    feedback_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    feedback_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    feedback_at: Mapped[datetime | None] = mapped_column(nullable=True)

    escalation_level: Mapped[int] = mapped_column(default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationships
    baby: Mapped["Baby"] = relationship()
    session: Mapped["MonitoringSession"] = relationship(back_populates="detections")
    alerts: Mapped[list["DetectionAlert"]] = relationship(
        back_populates="detection",
        cascade="all, delete-orphan",
        order_by="DetectionAlert.sent_at",
    )
    escalations: Mapped[list["DetectionEscalation"]] = relationship(
        back_populates="detection",
        cascade="all, delete-orphan",
        order_by="DetectionEscalation.escalated_at",
    )

    @property
    def unread_alerts(self) -> list["DetectionAlert"]:
        return [
            a
            for a in self.alerts
            if a.status != AlertDeliveryStatus.READ.value and a.acknowledged_at is None
        ]


class DetectionAlert(Base):
    """Delivery record of a detection notification to one recipient."""

    __tablename__ = "detection_alerts"
    __table_args__ = (
        Index("idx_detection_alerts_detection", "detection_id"),
        Index("idx_detection_alerts_recipient", "sent_to_user_id", "sent_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    detection_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("detections.id", ondelete="CASCADE"), nullable=False
    )
    sent_to_user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    sent_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=AlertDeliveryStatus.SENT.value, nullable=False
    )
    # Recipient response
    acknowledged_at: Mapped[datetime | None] = mapped_column(nullable=True)
    action: Mapped[str | None] = mapped_column(String(20), nullable=True)

    detection: Mapped["Detection"] = relationship(back_populates="alerts")


class DetectionEscalation(Base):
    """One step of a detection's escalation history."""

    __tablename__ = "detection_escalations"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    detection_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("detections.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    escalated_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    detection: Mapped["Detection"] = relationship(back_populates="escalations")
