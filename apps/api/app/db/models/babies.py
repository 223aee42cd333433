"""SQLAlchemy ORM models for baby profiles and their access lists."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.enums import BloodType
from app.db.types import utcnow

if TYPE_CHECKING:
    from app.db.models import User


class Baby(Base):
    """
    A monitored child profile.

    Anchors access control: parents hold every permission, caregivers hold
    the flags stored on their BabyCaregiver row. Never hard-deleted; the
    profile is deactivated with is_active=False and every read path filters
    on it.
    """

    __tablename__ = "babies"
    __table_args__ = (
        Index("idx_babies_active", "is_active"),
        Index("idx_babies_dob", "date_of_birth"),
        CheckConstraint("height_cm >= 20 AND height_cm <= 150", name="ck_babies_height"),
        CheckConstraint("weight_kg >= 0.5 AND weight_kg <= 30", name="ck_babies_weight"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    date_of_birth: Mapped[date] = mapped_column(nullable=False)
    gender: Mapped[str] = mapped_column(String(10), nullable=False)
    height_cm: Mapped[float] = mapped_column(nullable=False)
    weight_kg: Mapped[float] = mapped_column(nullable=False)
    blood_type: Mapped[str] = mapped_column(
        String(10), default=BloodType.UNKNOWN.value, nullable=False
    )
    profile_picture: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Free-form profile documents: [{allergen, severity, notes}], [{condition, ...}], {...}
    allergies: Mapped[list] = mapped_column(default=list, nullable=False)
    medical_conditions: Mapped[list] = mapped_column(default=list, nullable=False)
    doctor: Mapped[dict | None] = mapped_column(nullable=True)
    sleep_settings: Mapped[dict] = mapped_column(default=dict, nullable=False)
    feeding_settings: Mapped[dict] = mapped_column(default=dict, nullable=False)

    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationships
    parents: Mapped[list["BabyParent"]] = relationship(
        back_populates="baby",
        cascade="all, delete-orphan",
        order_by="BabyParent.added_at",
    )
    caregivers: Mapped[list["BabyCaregiver"]] = relationship(
        back_populates="baby",
        cascade="all, delete-orphan",
        order_by="BabyCaregiver.created_at",
    )
    emergency_contacts: Mapped[list["EmergencyContact"]] = relationship(
        back_populates="baby",
        cascade="all, delete-orphan",
        order_by="EmergencyContact.created_at",
    )
    milestones: Mapped[list["Milestone"]] = relationship(
        back_populates="baby",
        cascade="all, delete-orphan",
        order_by="Milestone.created_at",
    )

    @property
    def parent_ids(self) -> list[uuid.UUID]:
        return [p.user_id for p in self.parents]

    def age_in_months(self, today: date | None = None) -> int:
        today = today or date.today()
        months = (today.year - self.date_of_birth.year) * 12 + (
            today.month - self.date_of_birth.month
        )
        return max(0, months)

    def age_in_days(self, today: date | None = None) -> int:
        today = today or date.today()
        return abs((today - self.date_of_birth).days)


class BabyParent(Base):
    """Ownership row: the user is a parent of the baby (full permissions)."""

    __tablename__ = "baby_parents"
    __table_args__ = (Index("idx_baby_parents_user", "user_id"),)

    baby_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("babies.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    added_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    baby: Mapped["Baby"] = relationship(back_populates="parents")
    user: Mapped["User"] = relationship()


class BabyCaregiver(Base):
    """
    Delegation row: the user is a caregiver with an explicit permission subset.

    edit_profile and manage_users are never stored here; they belong to
    parents only.
    """

    __tablename__ = "baby_caregivers"
    __table_args__ = (
        UniqueConstraint("baby_id", "user_id", name="uq_baby_caregivers_baby_user"),
        Index("idx_baby_caregivers_user", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    baby_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("babies.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    relationship_type: Mapped[str | None] = mapped_column(String(30), nullable=True)

    # Permission flags (all default FALSE)
    view_live_stream: Mapped[bool] = mapped_column(default=False, nullable=False)
    receive_alerts: Mapped[bool] = mapped_column(default=False, nullable=False)
    edit_routines: Mapped[bool] = mapped_column(default=False, nullable=False)
    view_reports: Mapped[bool] = mapped_column(default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    baby: Mapped["Baby"] = relationship(back_populates="caregivers")
    user: Mapped["User"] = relationship()


class EmergencyContact(Base):
    """Emergency contact for a baby. At most one per baby is primary."""

    __tablename__ = "emergency_contacts"
    __table_args__ = (
        Index(
            "uq_emergency_contacts_primary",
            "baby_id",
            unique=True,
            postgresql_where=text("is_primary = TRUE"),
            sqlite_where=text("is_primary = 1"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    baby_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("babies.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    relationship_type: Mapped[str] = mapped_column(String(50), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(30), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_primary: Mapped[bool] = mapped_column(default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    baby: Mapped["Baby"] = relationship(back_populates="emergency_contacts")


class Milestone(Base):
    """Developmental milestone recorded against a baby."""

    __tablename__ = "milestones"
    __table_args__ = (Index("idx_milestones_baby", "baby_id", "achieved_date"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    baby_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("babies.id", ondelete="CASCADE"), nullable=False
    )
    milestone_type: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    achieved_date: Mapped[date] = mapped_column(nullable=False)
    # Expected age range in months
    expected_age_min: Mapped[int | None] = mapped_column(nullable=True)
    expected_age_max: Mapped[int | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    recorded_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    baby: Mapped["Baby"] = relationship(back_populates="milestones")
