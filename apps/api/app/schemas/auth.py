"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel


class TokenPayload(BaseModel):
    """Decoded JWT payload structure."""
    sub: UUID  # user_id
    token_version: int


class CurrentUser(BaseModel):
    """
    Identity of the authenticated caller.

    Returned by the get_current_user dependency. Per-baby roles (parent or
    caregiver) are resolved by the services, not stored here.
    """
    user_id: UUID
    email: str
    display_name: str
