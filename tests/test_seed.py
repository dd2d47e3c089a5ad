from factories import count
from unimark_admin.modules.profiles.models import Profile
from unimark_admin.modules.roles.models import Role
from unimark_admin.scripts.seed_defaults import seed, seed_profiles, seed_roles


def test_seed_creates_defaults(database):
    seed(database)

    assert count(database, Role, name="admin") == 1
    assert count(database, Profile, name="System Administrator", type="System") == 1


def test_seed_is_idempotent(database):
    seed(database)

    with database.transaction() as session:
        assert seed_roles(session) == (0, 1)
        assert seed_profiles(session) == (0, 1)

    assert count(database, Role) == 1
    assert count(database, Profile) == 1


def test_seeded_records_are_protected(client, database):
    seed(database)

    assert client.delete("/api/admin/roles/delete", params={"name": "admin"}).status_code == 403
    assert client.delete(
        "/api/admin/profiles/delete", params={"name": "System Administrator"}
    ).status_code == 403
