import pytest
from fastapi.testclient import TestClient

from unimark_admin.modules.auth.service import AuthService, TokenCache
from unimark_admin.core.errors import UnauthorizedError


@pytest.fixture
def raw_client(app):
    """TestClient with the real bearer-token authentication."""
    return TestClient(app)


def _active(roles):
    return {
        "active": True,
        "sub": "kc-1",
        "preferred_username": "alice",
        "email": "alice@example.com",
        "realm_access": {"roles": roles},
    }


def test_missing_token_is_unauthorized(raw_client):
    response = raw_client.get("/api/admin/roles")
    assert response.status_code == 401
    assert response.json()["error"] == "Not authenticated"


def test_inactive_token_is_unauthorized(raw_client, keycloak):
    keycloak.introspection = {"active": False}
    response = raw_client.get("/api/admin/roles", headers={"Authorization": "Bearer expired"})
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid or expired token"


def test_non_admin_is_forbidden(raw_client, keycloak):
    keycloak.introspection = _active(["offline_access"])
    response = raw_client.get("/api/admin/roles", headers={"Authorization": "Bearer user-token"})
    assert response.status_code == 403


def test_admin_token_reaches_admin_routes(raw_client, keycloak):
    keycloak.introspection = _active(["admin"])
    response = raw_client.get("/api/admin/roles", headers={"Authorization": "Bearer admin-token"})
    assert response.status_code == 200
    assert response.json() == []


def test_me_reports_admin_flag(raw_client, keycloak):
    keycloak.introspection = _active(["offline_access"])
    response = raw_client.get("/api/auth/me", headers={"Authorization": "Bearer user-token"})
    assert response.status_code == 200
    assert response.json() == {
        "id": "kc-1",
        "username": "alice",
        "email": "alice@example.com",
        "roles": ["offline_access"],
        "is_admin": False,
    }


def test_introspection_result_is_cached(identity_client, keycloak):
    keycloak.introspection = _active(["admin"])
    service = AuthService(identity_client, TokenCache(ttl_sec=60))

    service.get_current_user("token-a")
    keycloak.introspection = {"active": False}
    assert service.get_current_user("token-a")["roles"] == ["admin"]

    with pytest.raises(UnauthorizedError):
        service.get_current_user("token-b")


def test_token_cache_expires():
    cache = TokenCache(ttl_sec=0)
    cache.set("token", {"id": "kc-1"})
    assert cache.get("token") is None
