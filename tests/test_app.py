from fastapi.testclient import TestClient
from sqlalchemy import inspect

from unimark_admin.database.session import Database
from unimark_admin.main import create_app


def test_health_and_security_headers(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_ready_pings_database(client):
    response = client.get("/ready")
    assert response.status_code == 200
    assert response.json()["database"] == "up"


def test_ready_reports_unreachable_database(app, client):
    app.state.database = Database("sqlite:////nonexistent-dir/unimark.db")
    response = client.get("/ready")
    assert response.status_code == 503


def test_request_validation_is_bad_request(client):
    response = client.post("/api/admin/roles", json={"description": "no name"})
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid request"
    assert "name" in body["details"]


def test_unknown_route_uses_error_body(client):
    response = client.get("/api/admin/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found", "details": None}


def test_wrong_method_uses_error_body(client):
    response = client.patch("/api/admin/roles/update")
    assert response.status_code == 405
    assert response.json() == {"error": "Method Not Allowed", "details": None}
    assert "PUT" in response.headers["allow"]


def test_startup_creates_schema_and_shutdown_closes(settings, identity_client):
    database = Database("sqlite://")
    app = create_app(settings=settings, database=database, identity_client=identity_client)

    with TestClient(app) as client:
        assert client.get("/ready").status_code == 200
        assert inspect(database.engine).has_table("roles")

    # Shutdown disposed the engine; the next use builds a fresh one
    assert database._engine is None
