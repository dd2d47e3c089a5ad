import pytest
from sqlalchemy import select

from factories import assign_role_users, count, make_role
from unimark_admin.core.errors import ConflictError, ForbiddenError, NotFoundError
from unimark_admin.core.guards import DeleteGuard, count_rows, lock_one
from unimark_admin.modules.roles.models import Role
from unimark_admin.modules.users.models import UserRole


def _role_guard(cleaned=None):
    return DeleteGuard(
        entity_label="role",
        dependent_label="user",
        count_dependents=lambda session, role: count_rows(session, UserRole.id, UserRole.role_id == role.id),
        is_protected=lambda role: role.name == "admin",
        protected_error="Cannot delete system roles",
        cleanup=(lambda session, role: cleaned.append(role.id)) if cleaned is not None else None,
    )


def test_guard_deletes_row_without_dependents(database):
    role_id = make_role(database, "editor")
    cleaned = []

    with database.transaction() as session:
        deleted_id = _role_guard(cleaned).run(session, select(Role).where(Role.id == role_id))

    assert deleted_id == role_id
    assert cleaned == [role_id]
    assert count(database, Role, id=role_id) == 0


def test_guard_refuses_with_dependents(database):
    role_id = make_role(database, "editor")
    assign_role_users(database, role_id, "u1")
    cleaned = []

    with pytest.raises(ConflictError) as exc_info:
        with database.transaction() as session:
            _role_guard(cleaned).run(session, select(Role).where(Role.id == role_id))

    assert exc_info.value.details == "Role has 1 user(s) assigned. Remove users from this role before deleting."
    assert cleaned == []
    assert count(database, Role, id=role_id) == 1


def test_guard_protection_wins_over_zero_dependents(database):
    role_id = make_role(database, "admin")

    with pytest.raises(ForbiddenError):
        with database.transaction() as session:
            _role_guard().run(session, select(Role).where(Role.name == "admin"))
    assert count(database, Role, id=role_id) == 1


def test_lock_one_not_found(database):
    with database.transaction() as session:
        with pytest.raises(NotFoundError) as exc_info:
            lock_one(session, select(Role).where(Role.name == "ghost"), "Role not found")
    assert exc_info.value.error == "Role not found"


def test_failed_transaction_rolls_back(database):
    with pytest.raises(RuntimeError):
        with database.transaction() as session:
            session.add(Role(name="temp"))
            session.flush()
            raise RuntimeError("boom")
    assert count(database, Role, name="temp") == 0
