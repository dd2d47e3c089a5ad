from fastapi import APIRouter, Depends, Query
from typing import Dict, List, Optional

from unimark_admin.core.dependencies import get_database, require_admin
from unimark_admin.core.errors import ValidationError
from unimark_admin.core.schemas import DeleteResponse, ERROR_RESPONSES
from unimark_admin.database.session import Database
from unimark_admin.modules.permission_sets.schemas import PermissionSetResponse
from unimark_admin.modules.profiles.schemas import (
    ProfileCreate, ProfileUpdate, ProfileResponse, ProfileWithCountResponse, ProfileMutationResponse,
    PermissionSetAssign, PermissionSetAssignResponse, PermissionSetUnassignResponse,
    ProfileUsersRemovedResponse
)
from unimark_admin.modules.profiles.service import ProfileService

router = APIRouter(prefix="/admin/profiles", tags=["profiles"], responses=ERROR_RESPONSES)


def get_profile_service(database: Database = Depends(get_database)) -> ProfileService:
    return ProfileService(database)


@router.get("", response_model=List[ProfileWithCountResponse])
def list_profiles(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    user_data: Dict = Depends(require_admin),
    service: ProfileService = Depends(get_profile_service)
):
    """List profiles with assigned permission set counts"""
    return service.list_profiles(limit=limit, offset=offset)


@router.post("", response_model=ProfileResponse, status_code=201)
def create_profile(
    profile_data: ProfileCreate,
    user_data: Dict = Depends(require_admin),
    service: ProfileService = Depends(get_profile_service)
):
    return service.create_profile(profile_data)


@router.put("/update", response_model=ProfileMutationResponse)
def update_profile(
    profile_data: ProfileUpdate,
    user_data: Dict = Depends(require_admin),
    service: ProfileService = Depends(get_profile_service)
):
    """Update profile by name"""
    profile = service.update_profile(profile_data)
    return ProfileMutationResponse(message="Profile updated successfully", profile=profile)


@router.delete("/delete", response_model=DeleteResponse)
def delete_profile_by_name(
    name: Optional[str] = Query(None),
    user_data: Dict = Depends(require_admin),
    service: ProfileService = Depends(get_profile_service)
):
    """Delete profile by name (refused for System profiles and profiles with users)"""
    if not name:
        raise ValidationError("Profile name is required")
    deleted_id = service.delete_profile_by_name(name)
    return DeleteResponse(message="Profile deleted successfully", deleted_id=deleted_id)


@router.get("/{profile_id}", response_model=ProfileResponse)
def get_profile(
    profile_id: str,
    user_data: Dict = Depends(require_admin),
    service: ProfileService = Depends(get_profile_service)
):
    return service.get_profile_by_id(profile_id)


@router.delete("/{profile_id}", response_model=DeleteResponse)
def delete_profile(
    profile_id: str,
    user_data: Dict = Depends(require_admin),
    service: ProfileService = Depends(get_profile_service)
):
    deleted_id = service.delete_profile(profile_id)
    return DeleteResponse(message="Profile deleted successfully", deleted_id=deleted_id)


@router.get("/{profile_id}/permission-sets", response_model=List[PermissionSetResponse])
def get_profile_permission_sets(
    profile_id: str,
    user_data: Dict = Depends(require_admin),
    service: ProfileService = Depends(get_profile_service)
):
    return service.get_profile_permission_sets(profile_id)


@router.post("/{profile_id}/assign-permission-set", response_model=PermissionSetAssignResponse)
def assign_permission_set(
    profile_id: str,
    assignment: PermissionSetAssign,
    user_data: Dict = Depends(require_admin),
    service: ProfileService = Depends(get_profile_service)
):
    """Assign a permission set to a profile (no-op when already assigned)"""
    inserted, record_id = service.assign_permission_set(profile_id, assignment.permission_set_id)
    return PermissionSetAssignResponse(inserted=inserted, record_id=record_id)


@router.delete("/{profile_id}/assign-permission-set", response_model=PermissionSetUnassignResponse)
def unassign_permission_set(
    profile_id: str,
    permission_set_id: Optional[str] = Query(None),
    user_data: Dict = Depends(require_admin),
    service: ProfileService = Depends(get_profile_service)
):
    if not permission_set_id:
        raise ValidationError("permission_set_id is required")
    deleted_count = service.unassign_permission_set(profile_id, permission_set_id)
    return PermissionSetUnassignResponse(deleted_count=deleted_count)


@router.delete("/{profile_id}/users", response_model=ProfileUsersRemovedResponse)
def remove_profile_users(
    profile_id: str,
    user_data: Dict = Depends(require_admin),
    service: ProfileService = Depends(get_profile_service)
):
    """Remove all user assignments for a profile"""
    removed = service.remove_all_users(profile_id)
    if removed == 0:
        return ProfileUsersRemovedResponse(message="No user assignments to remove", removed_users=0)
    return ProfileUsersRemovedResponse(
        message=f"Successfully removed {removed} user assignment(s)",
        removed_users=removed
    )
