from datetime import datetime, timedelta, timezone

import jwt
import pytest

from scholarstream.auth import CredentialService, Identity, ensure_owner, resolve_role
from scholarstream.errors import Forbidden
from scholarstream.models import Role, User


ADMIN_ROUTES = [
    ("get", "/dashboard/users", None),
    ("patch", "/dashboard/users/1/role", {"role": "moderator"}),
    ("delete", "/dashboard/users/1", None),
    ("get", "/dashboard/analytics", None),
    ("patch", "/scholarships/1", {"degree": "PhD"}),
    ("delete", "/scholarships/1", None),
]

MODERATOR_ROUTES = [
    ("get", "/moderator/applications", None),
    ("get", "/moderator/reviews", None),
    ("patch", "/applications/1/status", {"status": "approved"}),
    ("delete", "/moderator/reviews/1", None),
]


def _call(client, method, path, body, headers=None):
    kwargs = {"headers": headers or {}}
    if body is not None:
        kwargs["json"] = body
    return getattr(client, method)(path, **kwargs)


def test_missing_header_is_401_and_bad_token_is_403(client):
    r = client.get("/applications")
    assert r.status_code == 401
    assert r.json() == {"message": "Unauthorized access"}

    r = client.get("/applications", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 403
    assert "Forbidden" in r.json()["message"]

    r = client.get("/applications", headers={"Authorization": "Token abc"})
    assert r.status_code == 403


def test_expired_token_is_403(client, settings):
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    token = jwt.encode(
        {"email": "late@example.com", "exp": int(past.timestamp())},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    r = client.get("/applications", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 403


def test_token_signed_with_other_secret_is_403(client):
    token = CredentialService("some-other-secret").issue("x@example.com")
    r = client.get("/reviews", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 403


@pytest.mark.parametrize("role", [Role.STUDENT, Role.MODERATOR])
@pytest.mark.parametrize("method,path,body", ADMIN_ROUTES)
def test_admin_routes_reject_other_roles(client, make_user, auth_headers, role, method, path, body):
    make_user("someone@example.com", role)
    r = _call(client, method, path, body, auth_headers("someone@example.com"))
    assert r.status_code == 403
    assert r.json()["message"] == "Admin only access"


@pytest.mark.parametrize("role", [Role.STUDENT, Role.ADMIN])
@pytest.mark.parametrize("method,path,body", MODERATOR_ROUTES)
def test_moderator_routes_reject_other_roles(client, make_user, auth_headers, role, method, path, body):
    make_user("someone@example.com", role)
    r = _call(client, method, path, body, auth_headers("someone@example.com"))
    assert r.status_code == 403
    assert r.json()["message"] == "Moderator only access"


def test_unregistered_token_holder_is_treated_as_student(client, auth_headers):
    r = client.get("/dashboard/users", headers=auth_headers("ghost@example.com"))
    assert r.status_code == 403


def test_admin_gate_admits_admin(client, admin):
    r = client.get("/dashboard/users", headers=admin)
    assert r.status_code == 200
    assert [u["email"] for u in r.json()] == ["admin@example.com"]


def test_credential_service_round_trip():
    service = CredentialService("s3cret", expire_hours=1)
    identity = service.verify(service.issue("a@example.com", "Alice"))
    assert identity.email == "a@example.com"
    assert identity.name == "Alice"
    assert identity.claims["exp"] - identity.claims["iat"] == 3600


def test_credential_service_rejects_token_without_email():
    token = jwt.encode({"sub": "nobody"}, "s3cret", algorithm="HS256")
    with pytest.raises(Forbidden):
        CredentialService("s3cret").verify(token)


def test_resolve_role_normalises_case(session):
    session.add(User(email="boss@example.com", role="Admin"))
    session.add(User(email="odd@example.com", role="superuser"))
    session.commit()
    assert resolve_role(session, "boss@example.com") is Role.ADMIN
    assert resolve_role(session, "odd@example.com") is Role.STUDENT
    assert resolve_role(session, "nobody@example.com") is Role.STUDENT


def test_ensure_owner():
    me = Identity(email="me@example.com")
    ensure_owner(me, "me@example.com")
    with pytest.raises(Forbidden):
        ensure_owner(me, "you@example.com")
