import os

import pytest
from argon2 import PasswordHasher

# Ensure JWT_SECRET is set for tests
os.environ["JWT_SECRET"] = "test_secret_that_is_long_enough_for_hs256"

from eventhub.auth_service.store import UserStore  # noqa: E402
from eventhub.core.services import get_services  # noqa: E402
from eventhub.database.snapshot import JsonFileSnapshot  # noqa: E402
from eventhub.events_service.store import EventStore  # noqa: E402
from eventhub.gateway.server import create_app  # noqa: E402

TEST_SECRET = os.environ["JWT_SECRET"]
PASSWORD = "password123"


@pytest.fixture(autouse=True)
def fast_hasher(mocker):
    """
    Swap the module-level argon2 hasher for a cheap one so tests stay fast.
    """
    mocker.patch(
        "eventhub.auth_service.models.ph",
        PasswordHasher(time_cost=1, memory_cost=8, parallelism=1),
    )


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "JWT_SECRET": TEST_SECRET,
        "DATA_DIR": str(tmp_path),
    })
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    with app.app_context():
        return get_services()


@pytest.fixture
def user_store(tmp_path):
    return UserStore(JsonFileSnapshot(tmp_path / "users.json"))


@pytest.fixture
def event_store(tmp_path):
    return EventStore(JsonFileSnapshot(tmp_path / "events.json"))


def register(client, email, role="attendee", password=PASSWORD, first_name="Test", last_name="User"):
    return client.post("/auth/register", json={
        "email": email,
        "password": password,
        "confirm_password": password,
        "first_name": first_name,
        "last_name": last_name,
        "role": role,
    })


def login(client, email, password=PASSWORD):
    return client.post("/auth/login", json={"email": email, "password": password})


@pytest.fixture
def make_user(client):
    """
    Register and log in a user through the API.

    Returns a factory giving (user_dict, auth_headers).
    """
    def _make(email, role="attendee"):
        resp = register(client, email, role=role)
        assert resp.status_code == 201, resp.get_json()
        token = login(client, email).get_json()["token"]
        return resp.get_json()["user"], {"Authorization": f"Bearer {token}"}
    return _make


@pytest.fixture
def organizer(make_user):
    return make_user("org@example.com", role="organizer")


@pytest.fixture
def attendee(make_user):
    return make_user("att@example.com")
