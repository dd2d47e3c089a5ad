import httpx
import pytest
from fastapi.testclient import TestClient

from fakes import ISSUER, FakeKeycloak
from unimark_admin.config.settings import Settings
from unimark_admin.core.dependencies import require_admin
from unimark_admin.database.session import Database
from unimark_admin.identity.keycloak_client import KeycloakClient
from unimark_admin.main import create_app

ADMIN_CALLER = {"id": "caller-1", "username": "root", "email": "root@example.com", "roles": ["admin"]}


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        keycloak_issuer=ISSUER,
        keycloak_admin_client_secret="secret",
        rate_limit_enabled=False,
        environment="test",
    )


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.create_schema()
    yield db
    db.close()


@pytest.fixture
def keycloak():
    return FakeKeycloak()


@pytest.fixture
def identity_client(keycloak):
    http_client = httpx.Client(transport=httpx.MockTransport(keycloak.handler))
    client = KeycloakClient(ISSUER, "admin-cli", "secret", http_client=http_client)
    yield client
    client.close()


@pytest.fixture
def app(settings, database, identity_client):
    return create_app(settings=settings, database=database, identity_client=identity_client)


@pytest.fixture
def client(app):
    """TestClient whose caller always passes the admin check."""
    app.dependency_overrides[require_admin] = lambda: ADMIN_CALLER
    return TestClient(app)
