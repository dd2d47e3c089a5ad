from sqlalchemy.orm import Session

from factories import assign_role_users, count, make_role
from unimark_admin.modules.roles.models import Role
from unimark_admin.modules.users.models import UserRole


def test_create_and_get_role(client):
    response = client.post("/api/admin/roles", json={"name": "editor", "description": "Edits pages"})
    assert response.status_code == 201
    role = response.json()
    assert role["name"] == "editor"
    assert role["level"] == "realm"

    fetched = client.get(f"/api/admin/roles/{role['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["description"] == "Edits pages"


def test_create_role_duplicate_name_conflicts(client, database):
    make_role(database, "editor")
    response = client.post("/api/admin/roles", json={"name": "editor"})
    assert response.status_code == 409
    assert response.json() == {"error": "Role name already exists", "details": None}


def test_list_roles_reports_user_counts(client, database):
    editor_id = make_role(database, "editor")
    make_role(database, "viewer")
    assign_role_users(database, editor_id, "u1", "u2")

    response = client.get("/api/admin/roles")
    assert response.status_code == 200
    counts = {row["name"]: row["user_count"] for row in response.json()}
    assert counts == {"editor": 2, "viewer": 0}


def test_update_role_replaces_fields(client, database):
    parent_id = make_role(database, "staff")
    make_role(database, "editor")

    response = client.put(
        "/api/admin/roles/update",
        json={"name": "editor", "description": "New text", "level": "client", "parent_id": parent_id},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["role"]["description"] == "New text"
    assert body["role"]["level"] == "client"
    assert body["role"]["parent_id"] == parent_id

    # Omitted fields fall back to their defaults
    response = client.put("/api/admin/roles/update", json={"name": "editor"})
    assert response.json()["role"]["description"] == ""
    assert response.json()["role"]["parent_id"] is None


def test_update_missing_role_is_not_found(client):
    response = client.put("/api/admin/roles/update", json={"name": "ghost"})
    assert response.status_code == 404
    assert response.json()["error"] == "Role not found"


def test_update_role_rejects_cycles(client, database):
    root_id = make_role(database, "root")
    child_id = make_role(database, "child", parent_id=root_id)
    make_role(database, "grandchild", parent_id=child_id)

    response = client.put("/api/admin/roles/update", json={"name": "root", "parent_id": root_id})
    assert response.status_code == 400

    grandchild = client.get("/api/admin/roles").json()
    grandchild_id = next(row["id"] for row in grandchild if row["name"] == "grandchild")
    response = client.put("/api/admin/roles/update", json={"name": "root", "parent_id": grandchild_id})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid parent role"


def test_update_role_unknown_parent_is_not_found(client, database):
    make_role(database, "editor")
    response = client.put("/api/admin/roles/update", json={"name": "editor", "parent_id": "missing"})
    assert response.status_code == 404
    assert response.json()["error"] == "Parent role not found"


def test_delete_role_without_users(client, database):
    role_id = make_role(database, "editor")

    response = client.delete("/api/admin/roles/delete", params={"name": "editor"})
    assert response.status_code == 200
    assert response.json()["deleted_id"] == role_id
    assert count(database, Role, id=role_id) == 0


def test_delete_role_with_users_conflicts(client, database):
    role_id = make_role(database, "R")
    assign_role_users(database, role_id, "u1", "u2", "u3")

    response = client.delete("/api/admin/roles/delete", params={"name": "R"})
    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "Cannot delete role with assigned users"
    assert "3 user(s)" in body["details"]
    assert count(database, Role, id=role_id) == 1


def test_delete_protected_role_is_forbidden(client, database):
    role_id = make_role(database, "admin")
    assign_role_users(database, role_id, "u1", "u2")

    response = client.delete(f"/api/admin/roles/{role_id}")
    assert response.status_code == 403
    assert response.json()["error"] == "Cannot delete system roles"
    assert count(database, Role, id=role_id) == 1
    assert count(database, UserRole, role_id=role_id) == 2


def test_delete_role_requires_name(client):
    response = client.delete("/api/admin/roles/delete")
    assert response.status_code == 400
    assert response.json()["error"] == "Role name is required"


def test_delete_unknown_role_is_not_found(client):
    assert client.delete("/api/admin/roles/delete", params={"name": "ghost"}).status_code == 404
    assert client.delete("/api/admin/roles/missing-id").status_code == 404


def test_deleting_parent_detaches_children(client, database):
    parent_id = make_role(database, "parent")
    child_id = make_role(database, "child", parent_id=parent_id)

    assert client.delete(f"/api/admin/roles/{parent_id}").status_code == 200
    assert client.get(f"/api/admin/roles/{child_id}").json()["parent_id"] is None


def test_assign_and_list_role_users(client, database):
    role_id = make_role(database, "editor")

    response = client.post(f"/api/admin/roles/{role_id}/users", json={"user_id": "kc-1"})
    assert response.status_code == 201
    assert response.json()["user_id"] == "kc-1"

    again = client.post(f"/api/admin/roles/{role_id}/users", json={"user_id": "kc-1"})
    assert again.status_code == 409
    assert again.json()["error"] == "User already has this role"

    listing = client.get(f"/api/admin/roles/{role_id}/users").json()
    assert listing["role_name"] == "editor"
    assert [row["user_id"] for row in listing["users"]] == ["kc-1"]


def test_remove_all_role_users(client, database):
    role_id = make_role(database, "editor")
    other_id = make_role(database, "viewer")
    assign_role_users(database, role_id, "u1", "u2")
    assign_role_users(database, other_id, "u1")

    response = client.delete(f"/api/admin/roles/{role_id}/users")
    assert response.status_code == 200
    assert response.json()["removed_users"] == 2
    assert count(database, UserRole, role_id=role_id) == 0
    assert count(database, UserRole, role_id=other_id) == 1

    response = client.delete(f"/api/admin/roles/{role_id}/users")
    assert response.json()["removed_users"] == 0
    assert response.json()["message"] == "No user assignments to remove"


def test_remove_role_permission_sets(client, database):
    role_id = make_role(database, "editor")

    response = client.delete(f"/api/admin/roles/{role_id}/permission-sets")
    assert response.status_code == 200
    assert response.json()["removed_permission_sets"] == 0

    assert client.delete("/api/admin/roles/missing/permission-sets").status_code == 404


def test_concurrent_duplicate_assignment_is_conflict(client, database, monkeypatch):
    role_id = make_role(database, "editor")
    assign_role_users(database, role_id, "kc-1")
    # Existence check misses the row another request just committed
    monkeypatch.setattr(Session, "scalar", lambda self, *args, **kwargs: None)

    response = client.post(f"/api/admin/roles/{role_id}/users", json={"user_id": "kc-1"})
    assert response.status_code == 409
    assert response.json() == {"error": "User already has this role", "details": None}


def test_empty_parent_id_is_bad_request(client, database):
    make_role(database, "editor")

    created = client.post("/api/admin/roles", json={"name": "viewer", "parent_id": ""})
    assert created.status_code == 400
    assert created.json()["error"] == "Invalid request"
    assert "parent_id" in created.json()["details"]
    assert count(database, Role, name="viewer") == 0

    updated = client.put("/api/admin/roles/update", json={"name": "editor", "parent_id": ""})
    assert updated.status_code == 400
    assert "parent_id" in updated.json()["details"]
    assert client.get("/api/admin/roles").json()[0]["parent_id"] is None
