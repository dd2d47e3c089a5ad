from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class PermissionSetCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class PermissionSetUpdate(BaseModel):
    """Full replace of a permission set's description, addressed by name."""
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""


class PermissionSetResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    table_count: int = 0
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PermissionSetDetailResponse(PermissionSetResponse):
    tables_count: int = 0
    fields_count: int = 0


class PermissionSetMutationResponse(BaseModel):
    success: bool = True
    message: str
    permission_set: PermissionSetResponse


# Field access
class FieldAccessUpsert(BaseModel):
    table_name: str = Field(..., min_length=1, max_length=255)
    field_name: str = Field(..., min_length=1, max_length=255)
    can_view: bool = False
    can_edit: bool = False


class FieldAccessUpdate(BaseModel):
    id: str = Field(..., min_length=1)
    can_view: bool = False
    can_edit: bool = False


class FieldAccessResponse(BaseModel):
    id: str
    table_access_id: str
    table_name: str
    field_name: str
    can_view: bool
    can_edit: bool


class FieldAccessListResponse(BaseModel):
    fields: List[FieldAccessResponse]


class FieldAccessDeleteResponse(BaseModel):
    success: bool = True
    deleted_id: str


# Table access
class TableAccessUpsert(BaseModel):
    table_name: str = Field(..., min_length=1, max_length=255)
    can_create: bool = False
    can_read: bool = False
    can_update: bool = False
    can_delete: bool = False
    field_names: Optional[List[str]] = None  # None: grant view on every column of the table


class TableAccessResponse(BaseModel):
    id: str
    permission_set_id: str
    table_name: str
    can_create: bool
    can_read: bool
    can_update: bool
    can_delete: bool

    class Config:
        from_attributes = True


class TableAccessListResponse(BaseModel):
    tables: List[TableAccessResponse]


class TableAccessUpsertResponse(BaseModel):
    success: bool = True
    table: TableAccessResponse
    fields_assigned: int


class TableAccessDeleteResponse(BaseModel):
    success: bool = True
    deleted_id: str
    removed_fields: int


class ProfileAssignmentsRemovedResponse(BaseModel):
    success: bool = True
    message: str
    removed_profiles: int
    removed_tables: int
    removed_fields: int
