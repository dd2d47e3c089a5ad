import logging
from typing import Iterable, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from unimark_admin.core.errors import ConflictError, NotFoundError, UpstreamError, ValidationError
from unimark_admin.core.guards import DeleteGuard, count_rows, lock_one
from unimark_admin.database.base import utcnow
from unimark_admin.database.session import Database
from unimark_admin.modules.roles.models import Role
from unimark_admin.modules.roles.schemas import (
    RoleCreate, RoleUpdate, RoleResponse, RoleWithUserCountResponse,
    RoleUserResponse, RoleUsersResponse
)
from unimark_admin.modules.users.models import UserRole

logger = logging.getLogger(__name__)


class RoleService:
    def __init__(self, database: Database, protected_roles: Iterable[str] = ("admin",)):
        self.database = database
        self.protected_roles = set(protected_roles)
        self.delete_guard = DeleteGuard(
            entity_label="role",
            dependent_label="user",
            count_dependents=lambda session, role: count_rows(session, UserRole.id, UserRole.role_id == role.id),
            is_protected=lambda role: role.name in self.protected_roles,
            protected_error="Cannot delete system roles",
            protected_details="System roles are protected and cannot be deleted",
        )

    def create_role(self, role_data: RoleCreate) -> RoleResponse:
        """Create a new role"""
        try:
            with self.database.transaction() as session:
                if session.scalar(select(Role.id).where(Role.name == role_data.name)):
                    raise ConflictError("Role name already exists")
                if role_data.parent_id is not None:
                    self._get_parent(session, role_data.parent_id)

                role = Role(
                    name=role_data.name,
                    description=role_data.description,
                    level=role_data.level,
                    parent_id=role_data.parent_id,
                )
                session.add(role)
                session.flush()
                logger.info("Created role %s (%s)", role.name, role.id)
                return RoleResponse.model_validate(role)
        except IntegrityError:
            raise ConflictError("Role name already exists")

    def get_role_by_id(self, role_id: str) -> RoleResponse:
        """Get role by ID"""
        with self.database.session() as session:
            role = session.get(Role, role_id)
            if role is None:
                raise NotFoundError("Role not found")
            return RoleResponse.model_validate(role)

    def list_roles(self, limit: int = 100, offset: int = 0) -> List[RoleWithUserCountResponse]:
        """List roles with the number of users assigned to each"""
        user_counts = (
            select(UserRole.role_id, func.count(UserRole.id).label("cnt"))
            .group_by(UserRole.role_id)
            .subquery()
        )
        statement = (
            select(Role, func.coalesce(user_counts.c.cnt, 0))
            .outerjoin(user_counts, user_counts.c.role_id == Role.id)
            .order_by(Role.created_at.desc(), Role.name)
            .limit(limit)
            .offset(offset)
        )
        with self.database.session() as session:
            return [
                RoleWithUserCountResponse(**RoleResponse.model_validate(role).model_dump(), user_count=count)
                for role, count in session.execute(statement).all()
            ]

    def update_role(self, role_data: RoleUpdate) -> RoleResponse:
        """Replace description, level and parent of the role with this name"""
        with self.database.transaction() as session:
            role = lock_one(session, select(Role).where(Role.name == role_data.name), "Role not found")

            if role_data.parent_id is not None:
                self._get_parent(session, role_data.parent_id)
                self._ensure_not_descendant(session, role.id, role_data.parent_id)

            role.description = role_data.description
            role.level = role_data.level
            role.parent_id = role_data.parent_id
            role.updated_at = utcnow()
            session.flush()
            return RoleResponse.model_validate(role)

    def delete_role_by_name(self, name: str) -> str:
        """Guarded delete; returns the deleted role id"""
        with self.database.transaction() as session:
            return self.delete_guard.run(session, select(Role).where(Role.name == name))

    def delete_role(self, role_id: str) -> str:
        with self.database.transaction() as session:
            return self.delete_guard.run(session, select(Role).where(Role.id == role_id))

    def get_role_users(self, role_id: str) -> RoleUsersResponse:
        """Get all user assignments for a role"""
        with self.database.session() as session:
            role = session.get(Role, role_id)
            if role is None:
                raise NotFoundError("Role not found")
            rows = session.scalars(
                select(UserRole).where(UserRole.role_id == role_id).order_by(UserRole.created_at)
            ).all()
            return RoleUsersResponse(
                role_id=role.id,
                role_name=role.name,
                users=[RoleUserResponse.model_validate(row) for row in rows],
            )

    def assign_user_to_role(self, role_id: str, user_id: str) -> RoleUserResponse:
        """Assign a user to a role"""
        try:
            with self.database.transaction() as session:
                lock_one(session, select(Role).where(Role.id == role_id), "Role not found")
                existing = session.scalar(
                    select(UserRole.id).where(UserRole.role_id == role_id, UserRole.user_id == user_id)
                )
                if existing:
                    raise ConflictError("User already has this role")

                assignment = UserRole(user_id=user_id, role_id=role_id)
                session.add(assignment)
                session.flush()
                return RoleUserResponse.model_validate(assignment)
        except IntegrityError:
            # Concurrent assignment won the uq_user_role race
            raise ConflictError("User already has this role")

    def remove_all_users(self, role_id: str) -> int:
        """Remove every user assignment of a role and verify none remain"""
        with self.database.transaction() as session:
            role = lock_one(session, select(Role).where(Role.id == role_id), "Role not found")
            current = count_rows(session, UserRole.id, UserRole.role_id == role.id)
            if current == 0:
                return 0

            result = session.execute(delete(UserRole).where(UserRole.role_id == role.id))
            remaining = count_rows(session, UserRole.id, UserRole.role_id == role.id)
            if remaining > 0:
                logger.error("Failed to remove all user assignments of role %s, %d remain", role.id, remaining)
                raise UpstreamError("Failed to remove all user assignments")

            logger.info("Removed %d user assignment(s) from role %s", result.rowcount, role.id)
            return result.rowcount

    def remove_all_permission_sets(self, role_id: str) -> int:
        """Permission sets hang off profiles, so a role never holds any to remove."""
        with self.database.session() as session:
            if session.get(Role, role_id) is None:
                raise NotFoundError("Role not found")
        return 0

    def _get_parent(self, session: Session, parent_id: str) -> Role:
        parent = session.get(Role, parent_id)
        if parent is None:
            raise NotFoundError("Parent role not found")
        return parent

    def _ensure_not_descendant(self, session: Session, role_id: str, parent_id: Optional[str]) -> None:
        """Walk up from the proposed parent; meeting role_id means a cycle."""
        seen = set()
        current = parent_id
        while current is not None and current not in seen:
            if current == role_id:
                raise ValidationError(
                    "Invalid parent role",
                    details="A role cannot be its own parent or a child of its descendants",
                )
            seen.add(current)
            current = session.scalar(select(Role.parent_id).where(Role.id == current))
