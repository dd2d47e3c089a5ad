from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional
from datetime import datetime


class UserCreate(BaseModel):
    username: str = Field(..., min_length=1)
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    enabled: bool = True
    password: str = Field(..., min_length=1)
    temporary_password: bool = False
    profile_id: Optional[str] = None


class UserCreateResponse(BaseModel):
    success: bool = True
    message: str
    user_id: str
    username: str
    profile_id: Optional[str] = None


class ProfileAssign(BaseModel):
    user_id: str = Field(..., min_length=1)
    profile_id: str = Field(..., min_length=1)


class UserProfileResponse(BaseModel):
    id: str
    user_id: str
    profile_id: str
    created_at: datetime

    class Config:
        from_attributes = True


class ProfileAssignResponse(BaseModel):
    success: bool = True
    assignment: UserProfileResponse


class AvailabilityResponse(BaseModel):
    available: bool
    username: Optional[str] = None
    email: Optional[str] = None
    reason: Optional[str] = None


class PasswordReset(BaseModel):
    # camelCase aliases keep older admin clients working
    user_id: str = Field(..., min_length=1, alias="userId")
    password: str = Field(..., min_length=1)
    temporary: bool = False

    class Config:
        populate_by_name = True


class ForgotPasswordRequest(BaseModel):
    user_id: str = Field(..., min_length=1, alias="userId")
    username: Optional[str] = None

    class Config:
        populate_by_name = True


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class UserProfileSummary(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    type: str

    class Config:
        from_attributes = True


class UserProfilesResponse(BaseModel):
    user_id: str
    profiles: List[UserProfileSummary]
    count: int


class UserRoleSummary(BaseModel):
    id: str
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class UserRolesResponse(BaseModel):
    user_id: str
    roles: List[UserRoleSummary]
    count: int


class AssignmentRemovedResponse(BaseModel):
    success: bool = True
    message: str
    removed: int
