"""Permission registry and access derivation for baby profiles.

All permissions are defined here with labels and descriptions.
Parent-only permissions can never be granted to a caregiver.

Precedence: parent > caregiver flags > no access
Parents: always hold every permission (immutable)
"""

from dataclasses import asdict, dataclass, fields
from enum import Enum
from uuid import UUID

from app.db.models import Baby


class BabyPermission(str, Enum):
    """Permission keys evaluated against a single baby."""

    VIEW_LIVE_STREAM = "view_live_stream"
    RECEIVE_ALERTS = "receive_alerts"
    EDIT_ROUTINES = "edit_routines"
    VIEW_REPORTS = "view_reports"
    EDIT_PROFILE = "edit_profile"
    MANAGE_USERS = "manage_users"


@dataclass(frozen=True)
class PermissionDef:
    """Permission definition with metadata."""
    key: str
    label: str
    description: str
    parent_only: bool = False  # Cannot be granted to caregivers


# =============================================================================
# Permission Registry
# =============================================================================

PERMISSION_REGISTRY: dict[str, PermissionDef] = {
    "view_live_stream": PermissionDef(
        "view_live_stream", "View Live Stream",
        "Watch the live camera feed and join the monitoring channel",
    ),
    "receive_alerts": PermissionDef(
        "receive_alerts", "Receive Alerts",
        "Get push alerts for detections",
    ),
    "edit_routines": PermissionDef(
        "edit_routines", "Edit Routines",
        "Create and modify sleep and feeding routines",
    ),
    "view_reports": PermissionDef(
        "view_reports", "View Reports",
        "See detection statistics and history reports",
    ),
    "edit_profile": PermissionDef(
        "edit_profile", "Edit Profile",
        "Modify the baby's profile", parent_only=True,
    ),
    "manage_users": PermissionDef(
        "manage_users", "Manage Users",
        "Invite, update, and remove parents and caregivers", parent_only=True,
    ),
}

# Flags a caregiver row can carry
CAREGIVER_GRANTABLE = [p for p in PERMISSION_REGISTRY.values() if not p.parent_only]


@dataclass(frozen=True)
class PermissionSet:
    """Effective permissions of one user over one baby."""

    view_live_stream: bool = False
    receive_alerts: bool = False
    edit_routines: bool = False
    view_reports: bool = False
    edit_profile: bool = False
    manage_users: bool = False

    @classmethod
    def full(cls) -> "PermissionSet":
        return cls(**{f.name: True for f in fields(cls)})

    @classmethod
    def none(cls) -> "PermissionSet":
        return cls()

    def allows(self, permission: BabyPermission | str) -> bool:
        key = permission.value if isinstance(permission, BabyPermission) else permission
        return bool(getattr(self, key))

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)


def get_permission(key: str) -> PermissionDef | None:
    """Get permission definition by key."""
    return PERMISSION_REGISTRY.get(key)


def is_parent_only(key: str) -> bool:
    """Check if permission can only be held by parents."""
    perm = PERMISSION_REGISTRY.get(key)
    return perm.parent_only if perm else False


# =============================================================================
# Access derivation (pure reads over Baby state)
# =============================================================================

def is_parent(baby: Baby, user_id: UUID) -> bool:
    return any(p.user_id == user_id for p in baby.parents)


def _caregiver_for(baby: Baby, user_id: UUID):
    for caregiver in baby.caregivers:
        if caregiver.user_id == user_id:
            return caregiver
    return None


def has_access(baby: Baby, user_id: UUID) -> bool:
    """True if the user is a parent or a listed caregiver, whatever their flags."""
    return is_parent(baby, user_id) or _caregiver_for(baby, user_id) is not None


def permissions_for(baby: Baby, user_id: UUID) -> PermissionSet:
    """
    Derive the effective permission set.

    Parents get everything, caregivers get exactly their stored flags,
    anyone else gets nothing. Never raises for unknown users.
    """
    if is_parent(baby, user_id):
        return PermissionSet.full()

    caregiver = _caregiver_for(baby, user_id)
    if caregiver is None:
        return PermissionSet.none()

    return PermissionSet(
        **{perm.key: bool(getattr(caregiver, perm.key)) for perm in CAREGIVER_GRANTABLE}
    )


def alert_recipients(baby: Baby) -> list[UUID]:
    """Parents first, then caregivers with receive_alerts; each user once."""
    recipients: list[UUID] = []
    for parent in baby.parents:
        if parent.user_id not in recipients:
            recipients.append(parent.user_id)
    for caregiver in baby.caregivers:
        if caregiver.receive_alerts and caregiver.user_id not in recipients:
            recipients.append(caregiver.user_id)
    return recipients
