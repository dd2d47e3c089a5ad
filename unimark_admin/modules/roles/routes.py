from fastapi import APIRouter, Depends, Query
from typing import Dict, List, Optional

from unimark_admin.config.settings import Settings
from unimark_admin.core.dependencies import get_database, get_settings, require_admin
from unimark_admin.core.errors import ValidationError
from unimark_admin.core.schemas import DeleteResponse, ERROR_RESPONSES
from unimark_admin.database.session import Database
from unimark_admin.modules.roles.schemas import (
    RoleCreate, RoleUpdate, RoleResponse, RoleWithUserCountResponse, RoleMutationResponse,
    RoleUserAssign, RoleUserResponse, RoleUsersResponse,
    RoleUsersRemovedResponse, RolePermissionSetsRemovedResponse
)
from unimark_admin.modules.roles.service import RoleService

router = APIRouter(prefix="/admin/roles", tags=["roles"], responses=ERROR_RESPONSES)


def get_role_service(
    database: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
) -> RoleService:
    return RoleService(database, protected_roles=settings.get_protected_roles())


@router.get("", response_model=List[RoleWithUserCountResponse])
def list_roles(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    user_data: Dict = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """List roles with assigned user counts"""
    return service.list_roles(limit=limit, offset=offset)


@router.post("", response_model=RoleResponse, status_code=201)
def create_role(
    role_data: RoleCreate,
    user_data: Dict = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Create a new role"""
    return service.create_role(role_data)


@router.put("/update", response_model=RoleMutationResponse)
def update_role(
    role_data: RoleUpdate,
    user_data: Dict = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Update role by name"""
    role = service.update_role(role_data)
    return RoleMutationResponse(message="Role updated successfully", role=role)


@router.delete("/delete", response_model=DeleteResponse)
def delete_role_by_name(
    name: Optional[str] = Query(None),
    user_data: Dict = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Delete role by name (refused for system roles and roles with users)"""
    if not name:
        raise ValidationError("Role name is required")
    deleted_id = service.delete_role_by_name(name)
    return DeleteResponse(message="Role deleted successfully", deleted_id=deleted_id)


@router.get("/{role_id}", response_model=RoleResponse)
def get_role(
    role_id: str,
    user_data: Dict = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    return service.get_role_by_id(role_id)


@router.delete("/{role_id}", response_model=DeleteResponse)
def delete_role(
    role_id: str,
    user_data: Dict = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Delete role by ID, same guards as delete by name"""
    deleted_id = service.delete_role(role_id)
    return DeleteResponse(message="Role deleted successfully", deleted_id=deleted_id)


@router.get("/{role_id}/users", response_model=RoleUsersResponse)
def get_role_users(
    role_id: str,
    user_data: Dict = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    return service.get_role_users(role_id)


@router.post("/{role_id}/users", response_model=RoleUserResponse, status_code=201)
def assign_user_to_role(
    role_id: str,
    assignment: RoleUserAssign,
    user_data: Dict = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    return service.assign_user_to_role(role_id, assignment.user_id)


@router.delete("/{role_id}/users", response_model=RoleUsersRemovedResponse)
def remove_role_users(
    role_id: str,
    user_data: Dict = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Remove all user assignments for a role"""
    removed = service.remove_all_users(role_id)
    if removed == 0:
        return RoleUsersRemovedResponse(message="No user assignments to remove", removed_users=0)
    return RoleUsersRemovedResponse(
        message=f"Successfully removed {removed} user assignment(s)",
        removed_users=removed
    )


@router.delete("/{role_id}/permission-sets", response_model=RolePermissionSetsRemovedResponse)
def remove_role_permission_sets(
    role_id: str,
    user_data: Dict = Depends(require_admin),
    service: RoleService = Depends(get_role_service)
):
    """Remove all permission set assignments for a role"""
    removed = service.remove_all_permission_sets(role_id)
    return RolePermissionSetsRemovedResponse(
        message="No permission set assignments to remove (permission sets are assigned to profiles)",
        removed_permission_sets=removed
    )
