"""Pydantic schemas for baby profiles, caregivers, and milestones."""

from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.db.enums import (
    BloodType,
    CaregiverRelationship,
    FeedingType,
    Gender,
    MilestoneType,
)


class Allergy(BaseModel):
    allergen: str = Field(..., min_length=1)
    severity: Literal["mild", "moderate", "severe"] = "mild"
    notes: str | None = None


class EmergencyContactIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    relationship: str = Field(..., min_length=1, max_length=50)
    phone_number: str = Field(..., min_length=1, max_length=30)
    email: EmailStr | None = None
    is_primary: bool = False


class EmergencyContactRead(BaseModel):
    id: UUID
    name: str
    relationship_type: str
    phone_number: str
    email: str | None
    is_primary: bool

    model_config = {"from_attributes": True}


class Doctor(BaseModel):
    name: str | None = None
    phone_number: str | None = None
    email: EmailStr | None = None
    clinic: str | None = None
    address: str | None = None


class FeedingScheduleItem(BaseModel):
    time: str | None = None  # HH:MM
    amount: float | None = None  # ml
    type: str | None = None


class FeedingSettings(BaseModel):
    feeding_type: FeedingType
    feeding_schedule: list[FeedingScheduleItem] = []
    allergens: list[str] = []
    preferences: list[str] = []


class NapTime(BaseModel):
    start_time: str | None = None
    duration: int | None = None  # minutes


class SleepSettings(BaseModel):
    bedtime: str = "20:00"
    wakeup_time: str = "07:00"
    nap_times: list[NapTime] = []
    sleep_training_method: Literal[
        "ferber", "cry_it_out", "no_cry_it_out", "chair", "other", "none"
    ] = "none"


def _normalize_gender(value: str | None) -> str | None:
    if value is None:
        return None
    try:
        return Gender.normalize(value).value
    except ValueError:
        raise ValueError("gender must be one of Male, Female, Other")


class BabyCreate(BaseModel):
    """Request to create a baby profile. The caller becomes its parent."""
    name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: date
    gender: str
    height_cm: float = Field(..., ge=20, le=150)
    weight_kg: float = Field(..., ge=0.5, le=30)
    blood_type: BloodType = BloodType.UNKNOWN
    allergies: list[Allergy] = []
    emergency_contacts: list[EmergencyContactIn] = []
    doctor: Doctor | None = None
    feeding_settings: FeedingSettings | None = None
    sleep_settings: SleepSettings | None = None

    @field_validator("date_of_birth")
    @classmethod
    def _not_in_future(cls, value: date) -> date:
        if value > date.today():
            raise ValueError("Date of birth cannot be in the future")
        return value

    @field_validator("gender")
    @classmethod
    def _gender(cls, value: str) -> str:
        return _normalize_gender(value)


class BabyUpdate(BaseModel):
    """Partial update of a baby profile."""
    name: str | None = Field(None, min_length=1, max_length=100)
    height_cm: float | None = Field(None, ge=20, le=150)
    weight_kg: float | None = Field(None, ge=0.5, le=30)
    blood_type: BloodType | None = None
    profile_picture: str | None = Field(None, max_length=500)
    allergies: list[Allergy] | None = None
    emergency_contacts: list[EmergencyContactIn] | None = None
    doctor: Doctor | None = None
    feeding_settings: FeedingSettings | None = None
    sleep_settings: SleepSettings | None = None


class CaregiverPermissions(BaseModel):
    view_live_stream: bool = False
    receive_alerts: bool = False
    edit_routines: bool = False
    view_reports: bool = False


class CaregiverCreate(BaseModel):
    """Grant a registered user caregiver access."""
    email: EmailStr
    relationship: CaregiverRelationship = CaregiverRelationship.OTHER
    permissions: CaregiverPermissions = CaregiverPermissions()


class CaregiverUpdate(BaseModel):
    relationship: CaregiverRelationship | None = None
    view_live_stream: bool | None = None
    receive_alerts: bool | None = None
    edit_routines: bool | None = None
    view_reports: bool | None = None


class CaregiverRead(BaseModel):
    user_id: UUID
    relationship_type: str | None
    view_live_stream: bool
    receive_alerts: bool
    edit_routines: bool
    view_reports: bool

    model_config = {"from_attributes": True}


class ParentAdd(BaseModel):
    email: EmailStr


class BabyRead(BaseModel):
    """Full baby profile, including the caller's effective permissions."""
    id: UUID
    name: str
    date_of_birth: date
    gender: str
    height_cm: float
    weight_kg: float
    blood_type: str
    profile_picture: str | None
    age_in_months: int
    age_in_days: int
    allergies: list[dict]
    medical_conditions: list[dict]
    emergency_contacts: list[EmergencyContactRead]
    doctor: dict | None
    sleep_settings: dict
    feeding_settings: dict
    parent_ids: list[UUID]
    caregivers: list[CaregiverRead]
    permissions: dict[str, bool]
    created_at: datetime
    updated_at: datetime


class BabyListResponse(BaseModel):
    items: list[BabyRead]
    count: int


class MilestoneCreate(BaseModel):
    milestone_type: MilestoneType
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    achieved_date: date
    expected_age_min: int | None = Field(None, ge=0)
    expected_age_max: int | None = Field(None, ge=0)
    notes: str | None = None


class MilestoneRead(BaseModel):
    id: UUID
    milestone_type: str
    title: str
    description: str | None
    achieved_date: date
    expected_age_min: int | None
    expected_age_max: int | None
    notes: str | None
    recorded_by_user_id: UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


class BabyStatistics(BaseModel):
    age_in_days: int
    age_in_months: int
    total_milestones: int
    milestones_by_type: dict[str, int]
    recent_milestones: list[MilestoneRead]
    emergency_contacts_count: int
    allergies_count: int
    medical_conditions_count: int
