from pydantic import BaseModel, Field
from typing import Literal, Optional
from datetime import datetime

ProfileType = Literal["System", "Standard"]


class ProfileCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    type: ProfileType = "Standard"


class ProfileUpdate(BaseModel):
    """Full replace of a profile's mutable fields, addressed by name."""
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    type: ProfileType = "Standard"


class ProfileResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    type: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileWithCountResponse(ProfileResponse):
    permission_set_count: int = 0


class ProfileMutationResponse(BaseModel):
    success: bool = True
    message: str
    profile: ProfileResponse


class PermissionSetAssign(BaseModel):
    permission_set_id: str = Field(..., min_length=1)


class PermissionSetAssignResponse(BaseModel):
    success: bool = True
    inserted: bool
    record_id: Optional[str] = None


class PermissionSetUnassignResponse(BaseModel):
    success: bool = True
    deleted_count: int


class ProfileUsersRemovedResponse(BaseModel):
    success: bool = True
    message: str
    removed_users: int
