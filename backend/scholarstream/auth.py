"""Authentication helpers and FastAPI security dependencies.

This module provides the credential service that signs and verifies JWT
identity tokens, the `get_identity` dependency that validates the bearer
token of a request, and the role and ownership checks built on top of it.

A request without an `Authorization` header fails with 401; a header
that is present but malformed, or a token that does not verify, fails
with 403. Roles are disjoint: the admin gate admits only admins and the
moderator gate admits only moderators.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import jwt
from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from . import repositories
from .database import get_session
from .errors import Forbidden, Unauthorized
from .models import Role

bearer_scheme = HTTPBearer(auto_error=False)

ROLE_DENIED_MESSAGES = {
    Role.ADMIN: "Admin only access",
    Role.MODERATOR: "Moderator only access",
}


@dataclass
class Identity:
    """The verified caller, as decoded from a bearer token."""
    email: str
    name: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict)


class CredentialService:
    """Issue and verify signed identity tokens."""
    def __init__(self, secret: str, algorithm: str = "HS256", expire_hours: int = 1):
        self.secret = secret
        self.algorithm = algorithm
        self.expire_hours = expire_hours

    def issue(self, email: str, name: Optional[str] = None) -> str:
        """Return a signed token carrying the `email` claim."""
        now = datetime.now(timezone.utc)
        payload = {
            "email": email,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(hours=self.expire_hours)).timestamp()),
        }
        if name:
            payload["name"] = name
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Identity:
        """Decode and verify a token.

        Raises `Forbidden` on an expired or invalid token, or one whose
        payload carries no email claim.
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise Forbidden("Forbidden access: token expired")
        except jwt.InvalidTokenError:
            raise Forbidden("Forbidden access")
        email = payload.get("email")
        if not email or not isinstance(email, str):
            raise Forbidden("Forbidden access: invalid token payload")
        return Identity(email=email, name=payload.get("name"), claims=payload)


def get_credentials(request: Request) -> CredentialService:
    return request.app.state.credentials


def get_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    service: CredentialService = Depends(get_credentials),
) -> Identity:
    """FastAPI dependency that returns the verified caller identity."""
    if credentials is None:
        # HTTPBearer yields None both for a missing header and a non-bearer one
        if request.headers.get("Authorization"):
            raise Forbidden("Forbidden access")
        raise Unauthorized("Unauthorized access")
    return service.verify(credentials.credentials)


def resolve_role(session: Session, email: str) -> Role:
    """Look up the caller's role; unknown users are students."""
    user = repositories.UserRepository(session).get_by_email(email)
    if not user or not user.role:
        return Role.STUDENT
    try:
        return Role.parse(user.role)
    except ValueError:
        return Role.STUDENT


def require_role(role: Role) -> Callable[..., Identity]:
    """Build a dependency admitting only callers whose role is exactly `role`."""
    def dependency(
        identity: Identity = Depends(get_identity),
        session: Session = Depends(get_session),
    ) -> Identity:
        if resolve_role(session, identity.email) is not role:
            raise Forbidden(ROLE_DENIED_MESSAGES[role])
        return identity

    dependency.__name__ = f"require_{role.value}"
    return dependency


require_admin = require_role(Role.ADMIN)
require_moderator = require_role(Role.MODERATOR)


def ensure_owner(identity: Identity, owner_email: Optional[str]):
    """Raise `Forbidden` unless `owner_email` is the caller's email."""
    if owner_email != identity.email:
        raise Forbidden("Forbidden access")
