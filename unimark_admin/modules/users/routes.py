from fastapi import APIRouter, Depends, Query
from typing import Dict, Optional

from unimark_admin.core.dependencies import get_database, get_identity_client, require_admin
from unimark_admin.core.errors import ValidationError
from unimark_admin.core.schemas import ERROR_RESPONSES
from unimark_admin.database.session import Database
from unimark_admin.identity.keycloak_client import KeycloakClient
from unimark_admin.modules.users.schemas import (
    UserCreate, UserCreateResponse, ProfileAssign, ProfileAssignResponse,
    AvailabilityResponse, PasswordReset, ForgotPasswordRequest, MessageResponse,
    UserProfilesResponse, UserRolesResponse, AssignmentRemovedResponse
)
from unimark_admin.modules.users.service import UserService

router = APIRouter(prefix="/admin/users", tags=["users"], responses=ERROR_RESPONSES)


def get_user_service(
    database: Database = Depends(get_database),
    identity_client: KeycloakClient = Depends(get_identity_client)
) -> UserService:
    return UserService(database, identity_client)


@router.post("", response_model=UserCreateResponse, status_code=201)
def create_user(
    user_data_body: UserCreate,
    user_data: Dict = Depends(require_admin),
    service: UserService = Depends(get_user_service)
):
    """Create a user in the identity provider, optionally with a profile"""
    user_id = service.create_user(user_data_body)
    return UserCreateResponse(
        message="User created successfully",
        user_id=user_id,
        username=user_data_body.username,
        profile_id=user_data_body.profile_id,
    )


@router.post("/assign-profile", response_model=ProfileAssignResponse)
def assign_profile(
    assignment: ProfileAssign,
    user_data: Dict = Depends(require_admin),
    service: UserService = Depends(get_user_service)
):
    """Assign a profile to a user (replaces the current one)"""
    return ProfileAssignResponse(assignment=service.assign_profile(assignment.user_id, assignment.profile_id))


@router.get("/check-username", response_model=AvailabilityResponse)
def check_username(
    username: Optional[str] = Query(None),
    exclude_user_id: Optional[str] = Query(None, alias="excludeUserId"),
    user_data: Dict = Depends(require_admin),
    service: UserService = Depends(get_user_service)
):
    if not username:
        raise ValidationError("Username parameter is required")
    return service.check_username(username, exclude_user_id)


@router.get("/check-email", response_model=AvailabilityResponse)
def check_email(
    email: Optional[str] = Query(None),
    exclude_user_id: Optional[str] = Query(None, alias="excludeUserId"),
    user_data: Dict = Depends(require_admin),
    service: UserService = Depends(get_user_service)
):
    if not email:
        raise ValidationError("Email parameter is required")
    return service.check_email(email, exclude_user_id)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    reset_data: PasswordReset,
    user_data: Dict = Depends(require_admin),
    service: UserService = Depends(get_user_service)
):
    service.reset_password(reset_data.user_id, reset_data.password, reset_data.temporary)
    message = "Temporary password set successfully" if reset_data.temporary else "Password reset successfully"
    return MessageResponse(message=message)


@router.post("/send-forgot-password", response_model=MessageResponse)
def send_forgot_password(
    request_data: ForgotPasswordRequest,
    user_data: Dict = Depends(require_admin),
    service: UserService = Depends(get_user_service)
):
    """Email the user a link to set a new password"""
    service.send_forgot_password(request_data.user_id)
    return MessageResponse(message="Forgot password link sent successfully")


@router.get("/{user_id}/profiles", response_model=UserProfilesResponse)
def get_user_profiles(
    user_id: str,
    user_data: Dict = Depends(require_admin),
    service: UserService = Depends(get_user_service)
):
    return service.get_user_profiles(user_id)


@router.delete("/{user_id}/profiles", response_model=AssignmentRemovedResponse)
def remove_user_profile(
    user_id: str,
    profile_id: Optional[str] = Query(None),
    user_data: Dict = Depends(require_admin),
    service: UserService = Depends(get_user_service)
):
    """Remove one user-profile assignment"""
    if not profile_id:
        raise ValidationError("profile_id is required")
    removed = service.remove_profile(user_id, profile_id)
    return AssignmentRemovedResponse(message="Profile assignment removed successfully", removed=removed)


@router.get("/{user_id}/roles", response_model=UserRolesResponse)
def get_user_roles(
    user_id: str,
    user_data: Dict = Depends(require_admin),
    service: UserService = Depends(get_user_service)
):
    return service.get_user_roles(user_id)


@router.delete("/{user_id}/roles", response_model=AssignmentRemovedResponse)
def remove_user_role(
    user_id: str,
    role_id: Optional[str] = Query(None),
    user_data: Dict = Depends(require_admin),
    service: UserService = Depends(get_user_service)
):
    if not role_id:
        raise ValidationError("role_id is required")
    removed = service.remove_role(user_id, role_id)
    return AssignmentRemovedResponse(message="Role assignment removed successfully", removed=removed)
