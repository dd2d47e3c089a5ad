"""Row factories for tests; each commits its own transaction."""

from typing import Optional

from unimark_admin.database.session import Database
from unimark_admin.modules.permission_sets.models import PermissionSet
from unimark_admin.modules.profiles.models import Profile, ProfilePermissionSet
from unimark_admin.modules.roles.models import Role
from unimark_admin.modules.users.models import UserProfile, UserRole


def make_role(database: Database, name: str, parent_id: Optional[str] = None) -> str:
    with database.transaction() as session:
        role = Role(name=name, description=f"{name} role", parent_id=parent_id)
        session.add(role)
        session.flush()
        return role.id


def make_profile(database: Database, name: str, type: str = "Standard") -> str:
    with database.transaction() as session:
        profile = Profile(name=name, description=f"{name} profile", type=type)
        session.add(profile)
        session.flush()
        return profile.id


def make_permission_set(database: Database, name: str) -> str:
    with database.transaction() as session:
        permission_set = PermissionSet(name=name, description=f"{name} set")
        session.add(permission_set)
        session.flush()
        return permission_set.id


def assign_role_users(database: Database, role_id: str, *user_ids: str) -> None:
    with database.transaction() as session:
        session.add_all([UserRole(user_id=user_id, role_id=role_id) for user_id in user_ids])


def assign_profile_users(database: Database, profile_id: str, *user_ids: str) -> None:
    with database.transaction() as session:
        session.add_all([UserProfile(user_id=user_id, profile_id=profile_id) for user_id in user_ids])


def link_profile(database: Database, profile_id: str, permission_set_id: str) -> None:
    with database.transaction() as session:
        session.add(ProfilePermissionSet(profile_id=profile_id, permission_set_id=permission_set_id))


def count(database: Database, model, **filters) -> int:
    with database.session() as session:
        query = session.query(model)
        for column, value in filters.items():
            query = query.filter(getattr(model, column) == value)
        return query.count()
