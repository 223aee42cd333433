"""Baby profile API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.baby_access import BabyAccessDeniedError, BabyNotFoundError
from app.core.deps import get_current_user, get_db, require_csrf_header
from app.core.permissions import PermissionSet, permissions_for
from app.db.models import Baby
from app.schemas.auth import CurrentUser
from app.schemas.baby import (
    BabyCreate,
    BabyListResponse,
    BabyRead,
    BabyStatistics,
    BabyUpdate,
    CaregiverCreate,
    CaregiverRead,
    CaregiverUpdate,
    EmergencyContactRead,
    MilestoneCreate,
    MilestoneRead,
    ParentAdd,
)
from app.services import baby_service
from app.services.baby_service import (
    BabyValidationError,
    CaregiverExistsError,
    CaregiverNotFoundError,
    DuplicatePrimaryContactError,
    LastParentError,
    ParentNotFoundError,
    UserNotFoundError,
)

router = APIRouter()


def _baby_to_read(baby: Baby, permissions: PermissionSet) -> BabyRead:
    return BabyRead(
        id=baby.id,
        name=baby.name,
        date_of_birth=baby.date_of_birth,
        gender=baby.gender,
        height_cm=baby.height_cm,
        weight_kg=baby.weight_kg,
        blood_type=baby.blood_type,
        profile_picture=baby.profile_picture,
        age_in_months=baby.age_in_months(),
        age_in_days=baby.age_in_days(),
        allergies=baby.allergies or [],
        medical_conditions=baby.medical_conditions or [],
        emergency_contacts=[
            EmergencyContactRead.model_validate(c) for c in baby.emergency_contacts
        ],
        doctor=baby.doctor,
        sleep_settings=baby.sleep_settings or {},
        feeding_settings=baby.feeding_settings or {},
        parent_ids=baby.parent_ids,
        caregivers=[CaregiverRead.model_validate(c) for c in baby.caregivers],
        permissions=permissions.to_dict(),
        created_at=baby.created_at,
        updated_at=baby.updated_at,
    )


def _raise_for(e: Exception):
    """Map baby service errors to HTTP responses."""
    if isinstance(e, (BabyNotFoundError, CaregiverNotFoundError, ParentNotFoundError, UserNotFoundError)):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, BabyAccessDeniedError):
        raise HTTPException(status_code=403, detail=str(e))
    if isinstance(e, BabyValidationError):
        raise HTTPException(status_code=400, detail=str(e))
    if isinstance(e, (DuplicatePrimaryContactError, CaregiverExistsError, LastParentError)):
        raise HTTPException(status_code=409, detail=str(e))
    raise e


# =============================================================================
# Profile CRUD
# =============================================================================


@router.post(
    "",
    response_model=BabyRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_baby(
    data: BabyCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a baby profile. The caller becomes its parent."""
    try:
        baby = baby_service.create_baby(db, user.user_id, data)
        db.commit()
    except (BabyValidationError, DuplicatePrimaryContactError) as e:
        _raise_for(e)
    db.refresh(baby)
    return _baby_to_read(baby, PermissionSet.full())


@router.get("", response_model=BabyListResponse)
def list_babies(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List babies where the caller is a parent or caregiver."""
    rows = baby_service.list_babies_for_user(db, user.user_id)
    return BabyListResponse(
        items=[_baby_to_read(baby, perms) for baby, perms in rows],
        count=len(rows),
    )


@router.get("/{baby_id}", response_model=BabyRead)
def get_baby(
    baby_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        baby = baby_service.get_baby(db, baby_id, user.user_id)
    except (BabyNotFoundError, BabyAccessDeniedError) as e:
        _raise_for(e)
    return _baby_to_read(baby, permissions_for(baby, user.user_id))


@router.put(
    "/{baby_id}",
    response_model=BabyRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_baby(
    baby_id: UUID,
    data: BabyUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update profile fields (requires edit_profile)."""
    try:
        baby = baby_service.update_baby(db, baby_id, user.user_id, data)
        db.commit()
    except (
        BabyNotFoundError,
        BabyAccessDeniedError,
        BabyValidationError,
        DuplicatePrimaryContactError,
    ) as e:
        _raise_for(e)
    db.refresh(baby)
    return _baby_to_read(baby, permissions_for(baby, user.user_id))


@router.delete(
    "/{baby_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def delete_baby(
    baby_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Deactivate a baby profile (parents only)."""
    try:
        baby_service.deactivate_baby(db, baby_id, user.user_id)
        db.commit()
    except (BabyNotFoundError, BabyAccessDeniedError) as e:
        _raise_for(e)


# =============================================================================
# Milestones & statistics
# =============================================================================


@router.post(
    "/{baby_id}/milestones",
    response_model=MilestoneRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def add_milestone(
    baby_id: UUID,
    data: MilestoneCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        milestone = baby_service.add_milestone(db, baby_id, user.user_id, data)
        db.commit()
    except (BabyNotFoundError, BabyAccessDeniedError, BabyValidationError) as e:
        _raise_for(e)
    return milestone


@router.get("/{baby_id}/statistics", response_model=BabyStatistics)
def get_baby_statistics(
    baby_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        stats = baby_service.get_baby_statistics(db, baby_id, user.user_id)
    except (BabyNotFoundError, BabyAccessDeniedError) as e:
        _raise_for(e)
    return BabyStatistics(
        **{**stats, "recent_milestones": [
            MilestoneRead.model_validate(m) for m in stats["recent_milestones"]
        ]}
    )


# =============================================================================
# Caregivers & parents (manage_users)
# =============================================================================


@router.post(
    "/{baby_id}/caregivers",
    response_model=CaregiverRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def add_caregiver(
    baby_id: UUID,
    data: CaregiverCreate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        caregiver = baby_service.add_caregiver(db, baby_id, user.user_id, data)
        db.commit()
    except (
        BabyNotFoundError,
        BabyAccessDeniedError,
        UserNotFoundError,
        CaregiverExistsError,
    ) as e:
        _raise_for(e)
    return caregiver


@router.put(
    "/{baby_id}/caregivers/{caregiver_user_id}",
    response_model=CaregiverRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_caregiver(
    baby_id: UUID,
    caregiver_user_id: UUID,
    data: CaregiverUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        caregiver = baby_service.update_caregiver_permissions(
            db, baby_id, user.user_id, caregiver_user_id, data
        )
        db.commit()
    except (BabyNotFoundError, BabyAccessDeniedError, CaregiverNotFoundError) as e:
        _raise_for(e)
    return caregiver


@router.delete(
    "/{baby_id}/caregivers/{caregiver_user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def remove_caregiver(
    baby_id: UUID,
    caregiver_user_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        baby_service.remove_caregiver(db, baby_id, user.user_id, caregiver_user_id)
        db.commit()
    except (BabyNotFoundError, BabyAccessDeniedError, CaregiverNotFoundError) as e:
        _raise_for(e)


@router.post(
    "/{baby_id}/parents",
    response_model=dict,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def add_parent(
    baby_id: UUID,
    data: ParentAdd,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        parent = baby_service.add_parent(db, baby_id, user.user_id, data.email)
        db.commit()
    except (
        BabyNotFoundError,
        BabyAccessDeniedError,
        UserNotFoundError,
        CaregiverExistsError,
    ) as e:
        _raise_for(e)
    return {"baby_id": str(baby_id), "user_id": str(parent.user_id)}


@router.delete(
    "/{baby_id}/parents/{parent_user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def remove_parent(
    baby_id: UUID,
    parent_user_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        baby_service.remove_parent(db, baby_id, user.user_id, parent_user_id)
        db.commit()
    except (
        BabyNotFoundError,
        BabyAccessDeniedError,
        ParentNotFoundError,
        LastParentError,
    ) as e:
        _raise_for(e)
