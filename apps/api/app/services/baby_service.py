"""Baby profile service: profiles, milestones, parents and caregivers."""

import logging
from collections import Counter
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.baby_access import (
    BabyAccessDeniedError,
    accessible_baby_ids,
    check_baby_access,
    get_active_baby,
)
from app.core.permissions import BabyPermission, PermissionSet, is_parent, permissions_for
from app.core.structured_logging import build_log_context
from app.db.enums import Gender
from app.db.models import (
    Baby,
    BabyCaregiver,
    BabyParent,
    EmergencyContact,
    Milestone,
    User,
)
from app.schemas.baby import (
    BabyCreate,
    BabyUpdate,
    CaregiverCreate,
    CaregiverUpdate,
    EmergencyContactIn,
    MilestoneCreate,
)

logger = logging.getLogger(__name__)


class BabyServiceError(Exception):
    """Base exception for baby service errors."""

    pass


class BabyValidationError(BabyServiceError):
    """Profile data failed a domain rule not expressible in the request schema."""

    pass


class DuplicatePrimaryContactError(BabyServiceError):
    """More than one emergency contact flagged as primary."""

    pass


class UserNotFoundError(BabyServiceError):
    """Target user (by email) does not exist or is inactive."""

    pass


class CaregiverExistsError(BabyServiceError):
    """User is already a parent or caregiver of this baby."""

    pass


class CaregiverNotFoundError(BabyServiceError):
    """User is not a caregiver of this baby."""

    pass


class ParentNotFoundError(BabyServiceError):
    """User is not a parent of this baby."""

    pass


class LastParentError(BabyServiceError):
    """Removing the parent would leave the baby without one."""

    pass


RECENT_MILESTONES_LIMIT = 5


# =============================================================================
# Helpers
# =============================================================================


def _build_contacts(contacts: list[EmergencyContactIn]) -> list[EmergencyContact]:
    if sum(1 for c in contacts if c.is_primary) > 1:
        raise DuplicatePrimaryContactError("Only one emergency contact can be primary")
    return [
        EmergencyContact(
            name=c.name,
            relationship_type=c.relationship,
            phone_number=c.phone_number,
            email=c.email,
            is_primary=c.is_primary,
        )
        for c in contacts
    ]


def _get_active_user_by_email(db: Session, email: str) -> User:
    user = db.execute(
        select(User).where(User.email == email.strip().lower())
    ).scalar_one_or_none()
    if not user or not user.is_active:
        raise UserNotFoundError(f"No active user with email {email}")
    return user


# =============================================================================
# Profile CRUD
# =============================================================================


def create_baby(db: Session, user_id: UUID, data: BabyCreate) -> Baby:
    """Create a baby profile; the creator becomes its only parent."""
    if data.date_of_birth > date.today():
        raise BabyValidationError("Date of birth cannot be in the future")

    baby = Baby(
        name=data.name.strip(),
        date_of_birth=data.date_of_birth,
        gender=Gender.normalize(data.gender).value,
        height_cm=data.height_cm,
        weight_kg=data.weight_kg,
        blood_type=data.blood_type.value,
        allergies=[a.model_dump() for a in data.allergies],
        doctor=data.doctor.model_dump(exclude_none=True) if data.doctor else None,
        feeding_settings=(
            data.feeding_settings.model_dump(mode="json") if data.feeding_settings else {}
        ),
        sleep_settings=(
            data.sleep_settings.model_dump(mode="json") if data.sleep_settings else {}
        ),
    )
    baby.emergency_contacts = _build_contacts(data.emergency_contacts)
    baby.parents = [BabyParent(user_id=user_id)]
    db.add(baby)
    db.flush()

    logger.info("Baby profile created", extra=build_log_context(user_id=user_id, baby_id=baby.id))
    return baby


def list_babies_for_user(db: Session, user_id: UUID) -> list[tuple[Baby, PermissionSet]]:
    """Active babies the user can see, newest first, each with its permission set."""
    ids = accessible_baby_ids(db, user_id)
    if not ids:
        return []
    babies = (
        db.execute(select(Baby).where(Baby.id.in_(ids)).order_by(Baby.created_at.desc()))
        .scalars()
        .all()
    )
    return [(baby, permissions_for(baby, user_id)) for baby in babies]


def get_baby(db: Session, baby_id: UUID, user_id: UUID) -> Baby:
    """Load a baby the user has access to."""
    baby = get_active_baby(db, baby_id)
    check_baby_access(baby, user_id)
    return baby


def update_baby(db: Session, baby_id: UUID, user_id: UUID, updates: BabyUpdate) -> Baby:
    """Shallow update of profile fields. Requires edit_profile."""
    baby = get_active_baby(db, baby_id)
    check_baby_access(baby, user_id, BabyPermission.EDIT_PROFILE)

    fields = updates.model_dump(exclude_unset=True)
    contacts = fields.pop("emergency_contacts", None)

    for key in ("name", "height_cm", "weight_kg", "profile_picture"):
        if key in fields and fields[key] is not None:
            setattr(baby, key, fields[key])
    if updates.blood_type is not None:
        baby.blood_type = updates.blood_type.value
    if updates.allergies is not None:
        baby.allergies = [a.model_dump() for a in updates.allergies]
    if "doctor" in fields:
        baby.doctor = updates.doctor.model_dump(exclude_none=True) if updates.doctor else None
    if updates.feeding_settings is not None:
        baby.feeding_settings = updates.feeding_settings.model_dump(mode="json")
    if updates.sleep_settings is not None:
        baby.sleep_settings = updates.sleep_settings.model_dump(mode="json")

    if contacts is not None:
        new_contacts = _build_contacts(updates.emergency_contacts or [])
        baby.emergency_contacts.clear()
        # Flush deletes first so the primary-contact index never sees two rows
        db.flush()
        baby.emergency_contacts.extend(new_contacts)

    db.flush()
    logger.info("Baby profile updated", extra=build_log_context(user_id=user_id, baby_id=baby.id))
    return baby


def deactivate_baby(db: Session, baby_id: UUID, user_id: UUID) -> None:
    """Soft delete. Only parents may deactivate a profile."""
    baby = get_active_baby(db, baby_id)
    if not is_parent(baby, user_id):
        raise BabyAccessDeniedError("Only parents can delete a baby profile")
    baby.is_active = False
    db.flush()
    logger.info("Baby profile deactivated", extra=build_log_context(user_id=user_id, baby_id=baby.id))


# =============================================================================
# Milestones & statistics
# =============================================================================


def add_milestone(db: Session, baby_id: UUID, user_id: UUID, data: MilestoneCreate) -> Milestone:
    baby = get_active_baby(db, baby_id)
    check_baby_access(baby, user_id)

    if (
        data.expected_age_min is not None
        and data.expected_age_max is not None
        and data.expected_age_min > data.expected_age_max
    ):
        raise BabyValidationError("expected_age_min cannot exceed expected_age_max")

    milestone = Milestone(
        milestone_type=data.milestone_type.value,
        title=data.title.strip(),
        description=data.description,
        achieved_date=data.achieved_date,
        expected_age_min=data.expected_age_min,
        expected_age_max=data.expected_age_max,
        notes=data.notes,
        recorded_by_user_id=user_id,
    )
    baby.milestones.append(milestone)
    db.flush()
    return milestone


def get_baby_statistics(db: Session, baby_id: UUID, user_id: UUID) -> dict:
    """Profile summary: age, milestone breakdown and record counts."""
    baby = get_baby(db, baby_id, user_id)
    milestones = list(baby.milestones)
    recent = milestones[-RECENT_MILESTONES_LIMIT:]
    recent.reverse()

    return {
        "age_in_days": baby.age_in_days(),
        "age_in_months": baby.age_in_months(),
        "total_milestones": len(milestones),
        "milestones_by_type": dict(Counter(m.milestone_type for m in milestones)),
        "recent_milestones": recent,
        "emergency_contacts_count": len(baby.emergency_contacts),
        "allergies_count": len(baby.allergies or []),
        "medical_conditions_count": len(baby.medical_conditions or []),
    }


# =============================================================================
# Parents & caregivers (manage_users)
# =============================================================================


def _managed_baby(db: Session, baby_id: UUID, user_id: UUID) -> Baby:
    baby = get_active_baby(db, baby_id)
    check_baby_access(baby, user_id, BabyPermission.MANAGE_USERS)
    return baby


def add_caregiver(db: Session, baby_id: UUID, user_id: UUID, data: CaregiverCreate) -> BabyCaregiver:
    """Grant a registered user caregiver access with explicit flags."""
    baby = _managed_baby(db, baby_id, user_id)
    target = _get_active_user_by_email(db, data.email)

    if is_parent(baby, target.id) or any(c.user_id == target.id for c in baby.caregivers):
        raise CaregiverExistsError("User already has access to this baby")

    caregiver = BabyCaregiver(
        user_id=target.id,
        relationship_type=data.relationship.value,
        view_live_stream=data.permissions.view_live_stream,
        receive_alerts=data.permissions.receive_alerts,
        edit_routines=data.permissions.edit_routines,
        view_reports=data.permissions.view_reports,
    )
    baby.caregivers.append(caregiver)
    db.flush()

    logger.info(
        "Caregiver added",
        extra=build_log_context(user_id=user_id, baby_id=baby.id),
    )
    return caregiver


def _find_caregiver(baby: Baby, caregiver_user_id: UUID) -> BabyCaregiver:
    for caregiver in baby.caregivers:
        if caregiver.user_id == caregiver_user_id:
            return caregiver
    raise CaregiverNotFoundError("Caregiver not found")


def update_caregiver_permissions(
    db: Session,
    baby_id: UUID,
    user_id: UUID,
    caregiver_user_id: UUID,
    data: CaregiverUpdate,
) -> BabyCaregiver:
    baby = _managed_baby(db, baby_id, user_id)
    caregiver = _find_caregiver(baby, caregiver_user_id)

    if data.relationship is not None:
        caregiver.relationship_type = data.relationship.value
    for flag in ("view_live_stream", "receive_alerts", "edit_routines", "view_reports"):
        value = getattr(data, flag)
        if value is not None:
            setattr(caregiver, flag, value)
    db.flush()
    return caregiver


def remove_caregiver(db: Session, baby_id: UUID, user_id: UUID, caregiver_user_id: UUID) -> None:
    baby = _managed_baby(db, baby_id, user_id)
    caregiver = _find_caregiver(baby, caregiver_user_id)
    baby.caregivers.remove(caregiver)
    db.flush()
    logger.info("Caregiver removed", extra=build_log_context(user_id=user_id, baby_id=baby.id))


def add_parent(db: Session, baby_id: UUID, user_id: UUID, email: str) -> BabyParent:
    """Add a co-parent. An existing caregiver row is replaced by the parent row."""
    baby = _managed_baby(db, baby_id, user_id)
    target = _get_active_user_by_email(db, email)

    if is_parent(baby, target.id):
        raise CaregiverExistsError("User is already a parent of this baby")

    for caregiver in list(baby.caregivers):
        if caregiver.user_id == target.id:
            baby.caregivers.remove(caregiver)

    parent = BabyParent(user_id=target.id)
    baby.parents.append(parent)
    db.flush()
    return parent


def remove_parent(db: Session, baby_id: UUID, user_id: UUID, parent_user_id: UUID) -> None:
    """Remove a parent. A baby always keeps at least one parent."""
    baby = _managed_baby(db, baby_id, user_id)
    parent = next((p for p in baby.parents if p.user_id == parent_user_id), None)
    if parent is None:
        raise ParentNotFoundError("Parent not found")
    if len(baby.parents) <= 1:
        raise LastParentError("A baby must have at least one parent")
    baby.parents.remove(parent)
    db.flush()
