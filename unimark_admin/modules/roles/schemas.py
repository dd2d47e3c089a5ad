from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    level: str = "realm"
    parent_id: Optional[str] = Field(None, min_length=1)


class RoleUpdate(BaseModel):
    """Full replace of a role's mutable fields, addressed by name."""
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    level: str = "realm"
    parent_id: Optional[str] = Field(None, min_length=1)


class RoleResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    level: str
    parent_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RoleWithUserCountResponse(RoleResponse):
    user_count: int = 0


class RoleMutationResponse(BaseModel):
    success: bool = True
    message: str
    role: RoleResponse


class RoleUserAssign(BaseModel):
    user_id: str = Field(..., min_length=1)


class RoleUserResponse(BaseModel):
    id: str
    user_id: str
    role_id: str
    created_at: datetime

    class Config:
        from_attributes = True


class RoleUsersResponse(BaseModel):
    role_id: str
    role_name: str
    users: List[RoleUserResponse]


class RoleUsersRemovedResponse(BaseModel):
    success: bool = True
    message: str
    removed_users: int


class RolePermissionSetsRemovedResponse(BaseModel):
    success: bool = True
    message: str
    removed_permission_sets: int
