from fastapi import APIRouter, Depends, Query
from typing import Dict, Optional

from unimark_admin.core.dependencies import get_database, require_admin
from unimark_admin.core.errors import ValidationError
from unimark_admin.core.schemas import DeleteResponse, ERROR_RESPONSES
from unimark_admin.database.session import Database
from unimark_admin.modules.permission_sets.schemas import (
    PermissionSetCreate, PermissionSetUpdate, PermissionSetResponse,
    PermissionSetMutationResponse, FieldAccessUpsert, FieldAccessUpdate, FieldAccessResponse,
    FieldAccessListResponse, FieldAccessDeleteResponse, TableAccessUpsert, TableAccessListResponse,
    TableAccessUpsertResponse, TableAccessDeleteResponse, ProfileAssignmentsRemovedResponse
)
from unimark_admin.modules.permission_sets.service import PermissionSetService

router = APIRouter(prefix="/admin/permission-sets", tags=["permission-sets"], responses=ERROR_RESPONSES)


def get_permission_set_service(database: Database = Depends(get_database)) -> PermissionSetService:
    return PermissionSetService(database)


@router.get("")
def list_permission_sets(
    details: bool = Query(False),
    user_data: Dict = Depends(require_admin),
    service: PermissionSetService = Depends(get_permission_set_service)
):
    """List permission sets; details=true adds table and field counts"""
    return service.list_permission_sets(include_details=details)


@router.post("", response_model=PermissionSetResponse, status_code=201)
def create_permission_set(
    permission_set_data: PermissionSetCreate,
    user_data: Dict = Depends(require_admin),
    service: PermissionSetService = Depends(get_permission_set_service)
):
    return service.create_permission_set(permission_set_data)


@router.put("/update", response_model=PermissionSetMutationResponse)
def update_permission_set(
    permission_set_data: PermissionSetUpdate,
    user_data: Dict = Depends(require_admin),
    service: PermissionSetService = Depends(get_permission_set_service)
):
    permission_set = service.update_permission_set(permission_set_data)
    return PermissionSetMutationResponse(
        message="Permission set updated successfully", permission_set=permission_set
    )


@router.delete("/delete", response_model=DeleteResponse)
def delete_permission_set_by_name(
    name: Optional[str] = Query(None),
    user_data: Dict = Depends(require_admin),
    service: PermissionSetService = Depends(get_permission_set_service)
):
    """Delete permission set by name (refused while profiles are assigned)"""
    if not name:
        raise ValidationError("Permission set name is required")
    deleted_id = service.delete_permission_set_by_name(name)
    return DeleteResponse(message="Permission set deleted successfully", deleted_id=deleted_id)


@router.get("/{permission_set_id}", response_model=PermissionSetResponse)
def get_permission_set(
    permission_set_id: str,
    user_data: Dict = Depends(require_admin),
    service: PermissionSetService = Depends(get_permission_set_service)
):
    return service.get_permission_set(permission_set_id)


@router.delete("/{permission_set_id}", response_model=DeleteResponse)
def delete_permission_set(
    permission_set_id: str,
    user_data: Dict = Depends(require_admin),
    service: PermissionSetService = Depends(get_permission_set_service)
):
    deleted_id = service.delete_permission_set(permission_set_id)
    return DeleteResponse(message="Permission set deleted successfully", deleted_id=deleted_id)


# Field access

@router.get("/{permission_set_id}/fields", response_model=FieldAccessListResponse)
def list_field_access(
    permission_set_id: str,
    user_data: Dict = Depends(require_admin),
    service: PermissionSetService = Depends(get_permission_set_service)
):
    return FieldAccessListResponse(fields=service.list_field_access(permission_set_id))


@router.post("/{permission_set_id}/fields", response_model=FieldAccessResponse)
def upsert_field_access(
    permission_set_id: str,
    field_data: FieldAccessUpsert,
    user_data: Dict = Depends(require_admin),
    service: PermissionSetService = Depends(get_permission_set_service)
):
    """Grant access to one field, creating the table access row if needed"""
    return service.upsert_field_access(permission_set_id, field_data)


@router.put("/{permission_set_id}/fields", response_model=FieldAccessResponse)
def update_field_access(
    permission_set_id: str,
    field_data: FieldAccessUpdate,
    user_data: Dict = Depends(require_admin),
    service: PermissionSetService = Depends(get_permission_set_service)
):
    return service.update_field_access(permission_set_id, field_data)


@router.delete("/{permission_set_id}/fields", response_model=FieldAccessDeleteResponse)
def delete_field_access(
    permission_set_id: str,
    id: Optional[str] = Query(None),
    user_data: Dict = Depends(require_admin),
    service: PermissionSetService = Depends(get_permission_set_service)
):
    if not id:
        raise ValidationError("id is required")
    deleted_id = service.delete_field_access(permission_set_id, id)
    return FieldAccessDeleteResponse(deleted_id=deleted_id)


# Table access

@router.get("/{permission_set_id}/tables", response_model=TableAccessListResponse)
def list_table_access(
    permission_set_id: str,
    user_data: Dict = Depends(require_admin),
    service: PermissionSetService = Depends(get_permission_set_service)
):
    return TableAccessListResponse(tables=service.list_table_access(permission_set_id))


@router.post("/{permission_set_id}/tables", response_model=TableAccessUpsertResponse)
def upsert_table_access(
    permission_set_id: str,
    table_data: TableAccessUpsert,
    user_data: Dict = Depends(require_admin),
    service: PermissionSetService = Depends(get_permission_set_service)
):
    """Set CRUD flags on a table and grant view access to its fields"""
    table, fields_assigned = service.upsert_table_access(permission_set_id, table_data)
    return TableAccessUpsertResponse(table=table, fields_assigned=fields_assigned)


@router.delete("/{permission_set_id}/tables/{table_access_id}", response_model=TableAccessDeleteResponse)
def delete_table_access(
    permission_set_id: str,
    table_access_id: str,
    user_data: Dict = Depends(require_admin),
    service: PermissionSetService = Depends(get_permission_set_service)
):
    removed_fields = service.delete_table_access(permission_set_id, table_access_id)
    return TableAccessDeleteResponse(deleted_id=table_access_id, removed_fields=removed_fields)


@router.delete("/{permission_set_id}/profiles", response_model=ProfileAssignmentsRemovedResponse)
def remove_profile_assignments(
    permission_set_id: str,
    user_data: Dict = Depends(require_admin),
    service: PermissionSetService = Depends(get_permission_set_service)
):
    """Unassign all profiles and clear the set's table and field access"""
    profiles, tables, fields = service.remove_profile_assignments(permission_set_id)
    if profiles == 0 and tables == 0 and fields == 0:
        message = "Nothing to remove"
    else:
        message = (
            f"Removed {profiles} profile assignment(s), {tables} table access row(s) "
            f"and {fields} field access row(s)"
        )
    return ProfileAssignmentsRemovedResponse(
        message=message,
        removed_profiles=profiles,
        removed_tables=tables,
        removed_fields=fields,
    )
