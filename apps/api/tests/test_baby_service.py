"""Baby profiles, milestones, and caregiver management."""

from datetime import date, timedelta

import pytest
from pydantic import ValidationError

from app.core.baby_access import BabyAccessDeniedError, BabyNotFoundError
from app.core.permissions import has_access, permissions_for
from app.db.enums import CaregiverRelationship, MilestoneType
from app.schemas.baby import (
    BabyCreate,
    BabyUpdate,
    CaregiverCreate,
    CaregiverPermissions,
    CaregiverUpdate,
    EmergencyContactIn,
    MilestoneCreate,
)
from app.services import baby_service
from app.services.baby_service import (
    BabyValidationError,
    CaregiverExistsError,
    CaregiverNotFoundError,
    DuplicatePrimaryContactError,
    LastParentError,
    UserNotFoundError,
)


def _contact(name: str, primary: bool = False) -> EmergencyContactIn:
    return EmergencyContactIn(
        name=name, relationship="grandmother", phone_number="555-0100", is_primary=primary
    )


def _create(db, user, **overrides):
    payload = {
        "name": "Ada",
        "date_of_birth": date.today() - timedelta(days=100),
        "gender": "female",
        "height_cm": 58,
        "weight_kg": 5.2,
    }
    payload.update(overrides)
    baby = baby_service.create_baby(db, user.id, BabyCreate(**payload))
    db.commit()
    return baby


# =============================================================================
# Profile CRUD
# =============================================================================


def test_create_makes_creator_parent(db, parent):
    baby = _create(db, parent, emergency_contacts=[_contact("Grandma", primary=True)])

    assert baby.parent_ids == [parent.id]
    assert baby.gender == "Female"
    assert baby.blood_type == "Unknown"
    assert baby.is_active is True
    assert baby.age_in_days() == 100
    assert [c.relationship_type for c in baby.emergency_contacts] == ["grandmother"]
    assert permissions_for(baby, parent.id).manage_users is True


def test_create_rejects_two_primary_contacts(db, parent):
    with pytest.raises(DuplicatePrimaryContactError):
        _create(
            db,
            parent,
            emergency_contacts=[_contact("Grandma", True), _contact("Grandpa", True)],
        )


@pytest.mark.parametrize(
    "overrides",
    [
        {"date_of_birth": date.today() + timedelta(days=1)},
        {"gender": "robot"},
        {"height_cm": 10},
        {"weight_kg": 31},
    ],
)
def test_create_payload_validation(overrides):
    payload = {
        "name": "Ada",
        "date_of_birth": date.today() - timedelta(days=10),
        "gender": "Male",
        "height_cm": 50,
        "weight_kg": 3.5,
        **overrides,
    }
    with pytest.raises(ValidationError):
        BabyCreate(**payload)


def test_list_babies_scoped_to_user(db, make_baby, parent, caregiver, stranger):
    mine = make_baby([parent], [(caregiver, {"view_reports": True})], name="Mine")
    make_baby([stranger], name="Not mine")

    rows = baby_service.list_babies_for_user(db, caregiver.id)

    assert [b.id for b, _ in rows] == [mine.id]
    perms = rows[0][1]
    assert perms.view_reports is True
    assert perms.edit_profile is False


def test_update_requires_edit_profile(db, baby, caregiver):
    with pytest.raises(BabyAccessDeniedError):
        baby_service.update_baby(db, baby.id, caregiver.id, BabyUpdate(name="Bea"))


def test_update_replaces_contacts(db, parent):
    baby = _create(db, parent, emergency_contacts=[_contact("Grandma", True)])

    updated = baby_service.update_baby(
        db,
        baby.id,
        parent.id,
        BabyUpdate(weight_kg=6.1, emergency_contacts=[_contact("Aunt", True), _contact("Uncle")]),
    )
    db.commit()

    assert updated.weight_kg == 6.1
    assert updated.name == "Ada"
    assert sorted(c.name for c in updated.emergency_contacts) == ["Aunt", "Uncle"]


def test_deactivate_hides_baby(db, baby, parent):
    baby_service.deactivate_baby(db, baby.id, parent.id)
    db.commit()

    with pytest.raises(BabyNotFoundError):
        baby_service.get_baby(db, baby.id, parent.id)
    assert baby_service.list_babies_for_user(db, parent.id) == []


def test_caregiver_cannot_deactivate(db, baby, caregiver):
    with pytest.raises(BabyAccessDeniedError):
        baby_service.deactivate_baby(db, baby.id, caregiver.id)


# =============================================================================
# Milestones & statistics
# =============================================================================


def _milestone(title: str, kind: MilestoneType = MilestoneType.MOTOR, **kwargs) -> MilestoneCreate:
    return MilestoneCreate(
        milestone_type=kind, title=title, achieved_date=date.today(), **kwargs
    )


def test_milestone_age_range_validation(db, baby, parent):
    with pytest.raises(BabyValidationError):
        baby_service.add_milestone(
            db, baby.id, parent.id, _milestone("Rolled over", expected_age_min=6, expected_age_max=4)
        )


def test_statistics_summarize_milestones(db, baby, parent, caregiver):
    titles = ["Smiled", "Rolled", "Sat up", "Crawled", "Babbled", "Stood"]
    for title in titles:
        kind = MilestoneType.LANGUAGE if title == "Babbled" else MilestoneType.MOTOR
        baby_service.add_milestone(db, baby.id, caregiver.id, _milestone(title, kind))
    db.commit()

    stats = baby_service.get_baby_statistics(db, baby.id, parent.id)

    assert stats["total_milestones"] == 6
    assert stats["milestones_by_type"] == {"motor": 5, "language": 1}
    assert [m.title for m in stats["recent_milestones"]] == [
        "Stood", "Babbled", "Crawled", "Sat up", "Rolled",
    ]
    assert stats["age_in_months"] >= 0


# =============================================================================
# Parents & caregivers
# =============================================================================


def test_add_update_remove_caregiver(db, make_baby, parent, make_user):
    baby = make_baby([parent])
    nanny = make_user("Nanny")

    added = baby_service.add_caregiver(
        db,
        baby.id,
        parent.id,
        CaregiverCreate(
            email=nanny.email,
            relationship=CaregiverRelationship.NANNY,
            permissions=CaregiverPermissions(receive_alerts=True),
        ),
    )
    db.commit()
    assert added.relationship_type == "nanny"
    assert permissions_for(baby, nanny.id).receive_alerts is True
    assert permissions_for(baby, nanny.id).view_reports is False

    baby_service.update_caregiver_permissions(
        db, baby.id, parent.id, nanny.id, CaregiverUpdate(view_reports=True)
    )
    db.commit()
    assert permissions_for(baby, nanny.id).view_reports is True
    assert permissions_for(baby, nanny.id).receive_alerts is True

    baby_service.remove_caregiver(db, baby.id, parent.id, nanny.id)
    db.commit()
    assert not has_access(baby, nanny.id)


def test_caregiver_cannot_manage_users(db, baby, caregiver, make_user):
    other = make_user("Neighbour")

    with pytest.raises(BabyAccessDeniedError):
        baby_service.add_caregiver(db, baby.id, caregiver.id, CaregiverCreate(email=other.email))


def test_add_existing_member_conflicts(db, baby, parent, caregiver):
    with pytest.raises(CaregiverExistsError):
        baby_service.add_caregiver(db, baby.id, parent.id, CaregiverCreate(email=caregiver.email))


def test_add_unknown_user(db, baby, parent):
    with pytest.raises(UserNotFoundError):
        baby_service.add_caregiver(
            db, baby.id, parent.id, CaregiverCreate(email="nobody@angeleyes.app")
        )


def test_remove_unknown_caregiver(db, baby, parent, stranger):
    with pytest.raises(CaregiverNotFoundError):
        baby_service.remove_caregiver(db, baby.id, parent.id, stranger.id)


def test_promote_caregiver_to_parent(db, baby, parent, caregiver):
    baby_service.add_parent(db, baby.id, parent.id, caregiver.email)
    db.commit()

    assert set(baby.parent_ids) == {parent.id, caregiver.id}
    assert baby.caregivers == []
    assert permissions_for(baby, caregiver.id).manage_users is True


def test_last_parent_cannot_be_removed(db, baby, parent):
    with pytest.raises(LastParentError):
        baby_service.remove_parent(db, baby.id, parent.id, parent.id)


def test_remove_co_parent(db, make_baby, parent, make_user):
    co_parent = make_user("Co-parent")
    baby = make_baby([parent, co_parent])

    baby_service.remove_parent(db, baby.id, parent.id, co_parent.id)
    db.commit()

    assert baby.parent_ids == [parent.id]
