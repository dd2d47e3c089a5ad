import logging
from typing import List, Tuple, Union

from sqlalchemy import delete, func, inspect, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from unimark_admin.core.errors import ConflictError, NotFoundError
from unimark_admin.core.guards import DeleteGuard, count_rows, lock_one
from unimark_admin.database.base import utcnow
from unimark_admin.database.session import Database
from unimark_admin.database.upsert import insert_or_ignore, upsert
from unimark_admin.modules.permission_sets.models import FieldAccess, PermissionSet, TableAccess
from unimark_admin.modules.permission_sets.schemas import (
    PermissionSetCreate, PermissionSetUpdate, PermissionSetResponse, PermissionSetDetailResponse,
    FieldAccessUpsert, FieldAccessUpdate, FieldAccessResponse,
    TableAccessUpsert, TableAccessResponse
)
from unimark_admin.modules.profiles.models import ProfilePermissionSet

logger = logging.getLogger(__name__)


def refresh_table_count(session: Session, permission_set_id: str) -> int:
    """Rewrite permission_sets.table_count from the table access rows."""
    count = count_rows(session, TableAccess.id, TableAccess.permission_set_id == permission_set_id)
    session.execute(
        update(PermissionSet)
        .where(PermissionSet.id == permission_set_id)
        .values(table_count=count)
        .execution_options(synchronize_session=False)
    )
    return count


def delete_grants(session: Session, permission_set_id: str) -> Tuple[int, int]:
    """Delete every table and field access row of a permission set.

    Returns (tables_removed, fields_removed).
    """
    table_ids = select(TableAccess.id).where(TableAccess.permission_set_id == permission_set_id)
    fields = session.execute(
        delete(FieldAccess)
        .where(FieldAccess.table_access_id.in_(table_ids))
        .execution_options(synchronize_session=False)
    ).rowcount
    tables = session.execute(
        delete(TableAccess)
        .where(TableAccess.permission_set_id == permission_set_id)
        .execution_options(synchronize_session=False)
    ).rowcount
    refresh_table_count(session, permission_set_id)
    return tables, fields


PERMISSION_SET_DELETE_GUARD = DeleteGuard(
    entity_label="permission set",
    dependent_label="profile",
    count_dependents=lambda session, permission_set: count_rows(
        session, ProfilePermissionSet.id, ProfilePermissionSet.permission_set_id == permission_set.id
    ),
    cleanup=lambda session, permission_set: delete_grants(session, permission_set.id),
)


class PermissionSetService:
    def __init__(self, database: Database):
        self.database = database

    def create_permission_set(self, data: PermissionSetCreate) -> PermissionSetResponse:
        """Create a new permission set"""
        try:
            with self.database.transaction() as session:
                if session.scalar(select(PermissionSet.id).where(PermissionSet.name == data.name)):
                    raise ConflictError("Permission set name already exists")
                permission_set = PermissionSet(name=data.name, description=data.description, table_count=0)
                session.add(permission_set)
                session.flush()
                logger.info("Created permission set %s (%s)", permission_set.name, permission_set.id)
                return PermissionSetResponse.model_validate(permission_set)
        except IntegrityError:
            raise ConflictError("Permission set name already exists")

    def get_permission_set(self, permission_set_id: str) -> PermissionSetResponse:
        with self.database.session() as session:
            permission_set = session.get(PermissionSet, permission_set_id)
            if permission_set is None:
                raise NotFoundError("Permission set not found")
            return PermissionSetResponse.model_validate(permission_set)

    def list_permission_sets(
        self, include_details: bool = False
    ) -> List[Union[PermissionSetResponse, PermissionSetDetailResponse]]:
        """List permission sets, newest first; details adds live table/field counts"""
        with self.database.session() as session:
            if not include_details:
                rows = session.scalars(
                    select(PermissionSet).order_by(PermissionSet.created_at.desc(), PermissionSet.name)
                ).all()
                return [PermissionSetResponse.model_validate(row) for row in rows]

            table_counts = (
                select(TableAccess.permission_set_id, func.count(TableAccess.id).label("cnt"))
                .group_by(TableAccess.permission_set_id)
                .subquery()
            )
            field_counts = (
                select(TableAccess.permission_set_id, func.count(FieldAccess.id).label("cnt"))
                .join(FieldAccess, FieldAccess.table_access_id == TableAccess.id)
                .group_by(TableAccess.permission_set_id)
                .subquery()
            )
            statement = (
                select(
                    PermissionSet,
                    func.coalesce(table_counts.c.cnt, 0),
                    func.coalesce(field_counts.c.cnt, 0),
                )
                .outerjoin(table_counts, table_counts.c.permission_set_id == PermissionSet.id)
                .outerjoin(field_counts, field_counts.c.permission_set_id == PermissionSet.id)
                .order_by(PermissionSet.created_at.desc(), PermissionSet.name)
            )
            return [
                PermissionSetDetailResponse(
                    **PermissionSetResponse.model_validate(row).model_dump(),
                    tables_count=tables,
                    fields_count=fields,
                )
                for row, tables, fields in session.execute(statement).all()
            ]

    def update_permission_set(self, data: PermissionSetUpdate) -> PermissionSetResponse:
        """Replace the description of the permission set with this name"""
        with self.database.transaction() as session:
            permission_set = lock_one(
                session, select(PermissionSet).where(PermissionSet.name == data.name), "Permission set not found"
            )
            permission_set.description = data.description
            permission_set.updated_at = utcnow()
            session.flush()
            return PermissionSetResponse.model_validate(permission_set)

    def delete_permission_set_by_name(self, name: str) -> str:
        with self.database.transaction() as session:
            return PERMISSION_SET_DELETE_GUARD.run(session, select(PermissionSet).where(PermissionSet.name == name))

    def delete_permission_set(self, permission_set_id: str) -> str:
        with self.database.transaction() as session:
            return PERMISSION_SET_DELETE_GUARD.run(
                session, select(PermissionSet).where(PermissionSet.id == permission_set_id)
            )

    # Field access

    def list_field_access(self, permission_set_id: str) -> List[FieldAccessResponse]:
        with self.database.session() as session:
            if session.get(PermissionSet, permission_set_id) is None:
                raise NotFoundError("Permission set not found")
            rows = session.execute(
                select(FieldAccess, TableAccess.table_name)
                .join(TableAccess, TableAccess.id == FieldAccess.table_access_id)
                .where(TableAccess.permission_set_id == permission_set_id)
                .order_by(TableAccess.table_name, FieldAccess.field_name)
            ).all()
            return [_field_response(field, table_name) for field, table_name in rows]

    def upsert_field_access(self, permission_set_id: str, data: FieldAccessUpsert) -> FieldAccessResponse:
        """Grant field access, creating the owning table access when missing.

        Repeating the call with new flags overwrites them; there is never more
        than one table access per (permission set, table).
        """
        with self.database.transaction() as session:
            lock_one(
                session, select(PermissionSet).where(PermissionSet.id == permission_set_id), "Permission set not found"
            )
            table_access_id = upsert(
                session,
                TableAccess,
                {"permission_set_id": permission_set_id, "table_name": data.table_name},
                ["permission_set_id", "table_name"],
                [],
            )
            field_id = upsert(
                session,
                FieldAccess,
                {
                    "table_access_id": table_access_id,
                    "field_name": data.field_name,
                    "can_view": data.can_view,
                    "can_edit": data.can_edit,
                },
                ["table_access_id", "field_name"],
                ["can_view", "can_edit"],
            )
            refresh_table_count(session, permission_set_id)
            field = session.get(FieldAccess, field_id)
            return _field_response(field, data.table_name)

    def update_field_access(self, permission_set_id: str, data: FieldAccessUpdate) -> FieldAccessResponse:
        with self.database.transaction() as session:
            field, table_name = self._lock_field(session, permission_set_id, data.id)
            field.can_view = data.can_view
            field.can_edit = data.can_edit
            session.flush()
            return _field_response(field, table_name)

    def delete_field_access(self, permission_set_id: str, field_id: str) -> str:
        with self.database.transaction() as session:
            field, _ = self._lock_field(session, permission_set_id, field_id)
            session.execute(delete(FieldAccess).where(FieldAccess.id == field.id))
            return field_id

    def _lock_field(self, session: Session, permission_set_id: str, field_id: str) -> Tuple[FieldAccess, str]:
        row = session.execute(
            select(FieldAccess, TableAccess.table_name)
            .join(TableAccess, TableAccess.id == FieldAccess.table_access_id)
            .where(FieldAccess.id == field_id, TableAccess.permission_set_id == permission_set_id)
            .with_for_update(of=FieldAccess)
        ).first()
        if row is None:
            raise NotFoundError("Field access not found")
        return row[0], row[1]

    # Table access

    def list_table_access(self, permission_set_id: str) -> List[TableAccessResponse]:
        with self.database.session() as session:
            if session.get(PermissionSet, permission_set_id) is None:
                raise NotFoundError("Permission set not found")
            rows = session.scalars(
                select(TableAccess)
                .where(TableAccess.permission_set_id == permission_set_id)
                .order_by(TableAccess.table_name)
            ).all()
            return [TableAccessResponse.model_validate(row) for row in rows]

    def upsert_table_access(self, permission_set_id: str, data: TableAccessUpsert) -> Tuple[TableAccessResponse, int]:
        """Set table-level CRUD flags and grant view-only access to its fields.

        Fields already granted keep their flags. Returns (table, fields_assigned).
        """
        with self.database.transaction() as session:
            lock_one(
                session, select(PermissionSet).where(PermissionSet.id == permission_set_id), "Permission set not found"
            )
            table_access_id = upsert(
                session,
                TableAccess,
                {
                    "permission_set_id": permission_set_id,
                    "table_name": data.table_name,
                    "can_create": data.can_create,
                    "can_read": data.can_read,
                    "can_update": data.can_update,
                    "can_delete": data.can_delete,
                },
                ["permission_set_id", "table_name"],
                ["can_create", "can_read", "can_update", "can_delete"],
            )

            field_names = data.field_names
            if field_names is None:
                field_names = _table_columns(session, data.table_name)
            for field_name in field_names:
                insert_or_ignore(
                    session,
                    FieldAccess,
                    {"table_access_id": table_access_id, "field_name": field_name, "can_view": True, "can_edit": False},
                    ["table_access_id", "field_name"],
                )

            refresh_table_count(session, permission_set_id)
            table = session.get(TableAccess, table_access_id)
            return TableAccessResponse.model_validate(table), len(field_names)

    def delete_table_access(self, permission_set_id: str, table_access_id: str) -> int:
        """Delete one table access and its field rows; returns the fields removed"""
        with self.database.transaction() as session:
            lock_one(
                session, select(PermissionSet).where(PermissionSet.id == permission_set_id), "Permission set not found"
            )
            table = session.scalar(
                select(TableAccess).where(
                    TableAccess.id == table_access_id, TableAccess.permission_set_id == permission_set_id
                )
            )
            if table is None:
                raise NotFoundError("Table access not found")
            fields = session.execute(
                delete(FieldAccess).where(FieldAccess.table_access_id == table.id)
            ).rowcount
            session.execute(delete(TableAccess).where(TableAccess.id == table.id))
            refresh_table_count(session, permission_set_id)
            return fields

    def remove_profile_assignments(self, permission_set_id: str) -> Tuple[int, int, int]:
        """Unassign every profile from the permission set and wipe its grants.

        The table and field access rows belong to the permission set, not to
        any single profile, so they are cleared for the whole set.
        Returns (profiles_removed, tables_removed, fields_removed).
        """
        with self.database.transaction() as session:
            lock_one(
                session, select(PermissionSet).where(PermissionSet.id == permission_set_id), "Permission set not found"
            )
            profiles = session.execute(
                delete(ProfilePermissionSet).where(ProfilePermissionSet.permission_set_id == permission_set_id)
            ).rowcount
            tables, fields = delete_grants(session, permission_set_id)
            logger.info(
                "Removed %d profile assignment(s), %d table(s), %d field(s) from permission set %s",
                profiles, tables, fields, permission_set_id,
            )
            return profiles, tables, fields


def _field_response(field: FieldAccess, table_name: str) -> FieldAccessResponse:
    return FieldAccessResponse(
        id=field.id,
        table_access_id=field.table_access_id,
        table_name=table_name,
        field_name=field.field_name,
        can_view=field.can_view,
        can_edit=field.can_edit,
    )


def _table_columns(session: Session, table_name: str) -> List[str]:
    inspector = inspect(session.connection())
    if not inspector.has_table(table_name):
        return []
    return [column["name"] for column in inspector.get_columns(table_name)]
