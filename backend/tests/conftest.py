import pytest
from fastapi.testclient import TestClient

from scholarstream.config import Settings
from scholarstream.database import Database
from scholarstream.main import create_app
from scholarstream.models import Role, User


@pytest.fixture
def settings():
    return Settings(DATABASE_URL="sqlite://", JWT_SECRET="test-secret", ALLOW_DEV_CORS=False)


@pytest.fixture
def database():
    """A fresh in-memory database per test."""
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def app(settings, database):
    return create_app(settings=settings, database=database)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def session(database):
    with database.session() as s:
        yield s


@pytest.fixture
def make_user(database):
    """Insert a user with the given role and return its id."""
    def _make(email: str, role: Role = Role.STUDENT, name: str = None) -> int:
        with database.session() as s:
            user = User(email=email, name=name or email.split("@")[0], role=role.value)
            s.add(user)
            s.commit()
            s.refresh(user)
            return user.id
    return _make


@pytest.fixture
def auth_headers(client):
    """Mint a bearer header for `email` through the `/jwt` endpoint."""
    def _headers(email: str, name: str = None) -> dict:
        body = {"email": email}
        if name:
            body["name"] = name
        r = client.post("/jwt", json=body)
        assert r.status_code == 200
        return {"Authorization": f"Bearer {r.json()['token']}"}
    return _headers


@pytest.fixture
def admin(make_user, auth_headers):
    make_user("admin@example.com", Role.ADMIN, name="Ada Admin")
    return auth_headers("admin@example.com")


@pytest.fixture
def moderator(make_user, auth_headers):
    make_user("mod@example.com", Role.MODERATOR, name="Mo Moderator")
    return auth_headers("mod@example.com")


@pytest.fixture
def scholarship(client):
    """Create one scholarship and return its JSON representation."""
    payload = {
        "scholarship_name": "Global Excellence Award",
        "university_name": "MIT",
        "degree": "Masters",
        "scholarship_category": "Full fund",
        "application_fees": 50,
        "service_charge": 10,
        "post_date": "2026-01-15",
        "deadline": "2026-12-31",
    }
    r = client.post("/scholarships", json=payload)
    assert r.status_code == 201
    return r.json()
