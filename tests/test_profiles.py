from factories import assign_profile_users, count, link_profile, make_permission_set, make_profile
from unimark_admin.modules.profiles.models import Profile, ProfilePermissionSet
from unimark_admin.modules.users.models import UserProfile


def test_create_profile_defaults_to_standard(client):
    response = client.post("/api/admin/profiles", json={"name": "Sales"})
    assert response.status_code == 201
    assert response.json()["type"] == "Standard"


def test_create_profile_rejects_unknown_type(client):
    response = client.post("/api/admin/profiles", json={"name": "Sales", "type": "Custom"})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"


def test_update_profile_by_name(client, database):
    make_profile(database, "Sales")

    response = client.put(
        "/api/admin/profiles/update", json={"name": "Sales", "description": "Field sales", "type": "System"}
    )
    assert response.status_code == 200
    assert response.json()["profile"]["description"] == "Field sales"
    assert response.json()["profile"]["type"] == "System"

    assert client.put("/api/admin/profiles/update", json={"name": "Nope"}).status_code == 404


def test_delete_profile_without_users(client, database):
    profile_id = make_profile(database, "Sales")
    permission_set_id = make_permission_set(database, "orders")
    link_profile(database, profile_id, permission_set_id)

    response = client.delete("/api/admin/profiles/delete", params={"name": "Sales"})
    assert response.status_code == 200
    assert response.json()["deleted_id"] == profile_id
    assert count(database, Profile, id=profile_id) == 0
    assert count(database, ProfilePermissionSet, profile_id=profile_id) == 0


def test_delete_profile_with_users_conflicts(client, database):
    profile_id = make_profile(database, "Sales")
    assign_profile_users(database, profile_id, "u1", "u2")

    response = client.delete(f"/api/admin/profiles/{profile_id}")
    assert response.status_code == 409
    assert "2 user(s)" in response.json()["details"]
    assert count(database, Profile, id=profile_id) == 1


def test_delete_system_profile_is_forbidden(client, database):
    profile_id = make_profile(database, "System Administrator", type="System")
    assign_profile_users(database, profile_id, "u1")

    response = client.delete("/api/admin/profiles/delete", params={"name": "System Administrator"})
    assert response.status_code == 403
    assert response.json() == {
        "error": "Cannot delete system profiles",
        "details": "System profiles are protected and cannot be deleted",
    }
    assert count(database, Profile, id=profile_id) == 1
    assert count(database, UserProfile, profile_id=profile_id) == 1


def test_assign_permission_set_twice_keeps_one_row(client, database):
    profile_id = make_profile(database, "Sales")
    permission_set_id = make_permission_set(database, "orders")
    url = f"/api/admin/profiles/{profile_id}/assign-permission-set"

    first = client.post(url, json={"permission_set_id": permission_set_id})
    second = client.post(url, json={"permission_set_id": permission_set_id})

    assert first.status_code == 200
    assert first.json()["inserted"] is True
    assert second.json()["inserted"] is False
    assert second.json()["record_id"] == first.json()["record_id"]
    assert count(database, ProfilePermissionSet, profile_id=profile_id) == 1


def test_assign_unknown_permission_set_is_not_found(client, database):
    profile_id = make_profile(database, "Sales")
    response = client.post(
        f"/api/admin/profiles/{profile_id}/assign-permission-set", json={"permission_set_id": "missing"}
    )
    assert response.status_code == 404
    assert response.json()["error"] == "Permission set not found"


def test_unassign_permission_set(client, database):
    profile_id = make_profile(database, "Sales")
    permission_set_id = make_permission_set(database, "orders")
    link_profile(database, profile_id, permission_set_id)
    url = f"/api/admin/profiles/{profile_id}/assign-permission-set"

    assert client.delete(url).status_code == 400

    response = client.delete(url, params={"permission_set_id": permission_set_id})
    assert response.status_code == 200
    assert response.json()["deleted_count"] == 1
    assert client.delete(url, params={"permission_set_id": permission_set_id}).json()["deleted_count"] == 0


def test_list_profile_permission_sets(client, database):
    profile_id = make_profile(database, "Sales")
    orders_id = make_permission_set(database, "orders")
    make_permission_set(database, "invoices")
    link_profile(database, profile_id, orders_id)

    response = client.get(f"/api/admin/profiles/{profile_id}/permission-sets")
    assert response.status_code == 200
    assert [row["name"] for row in response.json()] == ["orders"]

    listing = client.get("/api/admin/profiles").json()
    assert listing[0]["permission_set_count"] == 1


def test_remove_all_profile_users(client, database):
    profile_id = make_profile(database, "Sales")
    assign_profile_users(database, profile_id, "u1", "u2", "u3")

    response = client.delete(f"/api/admin/profiles/{profile_id}/users")
    assert response.status_code == 200
    assert response.json()["removed_users"] == 3
    assert count(database, UserProfile, profile_id=profile_id) == 0

    assert client.delete("/api/admin/profiles/missing/users").status_code == 404
