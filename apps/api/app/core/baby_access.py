"""Baby access control - centralized checks shared by every baby-scoped service.

Access is relationship-based:
- parents: full access
- caregivers: access, plus whatever flags their caregiver row grants
- anyone else: no access

Soft-deleted (inactive) babies behave as missing.
"""

from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.core.permissions import BabyPermission, has_access, permissions_for
from app.db.models import Baby, BabyCaregiver, BabyParent


class BabyAccessError(Exception):
    """Base exception for baby access errors."""

    pass


class BabyNotFoundError(BabyAccessError):
    """Baby does not exist or has been deactivated."""

    pass


class BabyAccessDeniedError(BabyAccessError):
    """Authenticated user lacks access or the required permission."""

    pass


def get_active_baby(db: Session, baby_id: UUID) -> Baby:
    """Load an active baby or raise BabyNotFoundError."""
    baby = db.get(Baby, baby_id)
    if baby is None or not baby.is_active:
        raise BabyNotFoundError("Baby not found")
    return baby


def check_baby_access(
    baby: Baby,
    user_id: UUID,
    permission: BabyPermission | None = None,
) -> None:
    """
    Check that the user can act on this baby.

    Without a permission only membership (parent or caregiver) is required.

    Raises:
        BabyAccessDeniedError: no membership, or the permission is not granted
    """
    if not has_access(baby, user_id):
        raise BabyAccessDeniedError("Access denied to this baby")
    if permission is not None and not permissions_for(baby, user_id).allows(permission):
        raise BabyAccessDeniedError(
            f"You do not have the '{permission.value}' permission for this baby"
        )


def accessible_baby_ids(db: Session, user_id: UUID) -> list[UUID]:
    """IDs of active babies where the user is a parent or caregiver."""
    query = (
        select(Baby.id)
        .where(Baby.is_active.is_(True))
        .where(
            or_(
                Baby.id.in_(select(BabyParent.baby_id).where(BabyParent.user_id == user_id)),
                Baby.id.in_(
                    select(BabyCaregiver.baby_id).where(BabyCaregiver.user_id == user_id)
                ),
            )
        )
    )
    return list(db.execute(query).scalars().all())
