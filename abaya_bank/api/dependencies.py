"""Dependency injection for FastAPI endpoints"""

from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from abaya_bank.domain.models import Identity
from abaya_bank.infrastructure.database.models import User
from abaya_bank.infrastructure.database.session import get_db
from abaya_bank.infrastructure.identity.tokens import IdentityVerifier, parse_bearer
from abaya_bank.services.access import ensure_admin
from abaya_bank.services.audit import RequestContext
from abaya_bank.services.users import resolve_user


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_request_context(request: Request) -> RequestContext:
    """Client address and agent recorded with audited actions"""
    return RequestContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def get_identity_verifier() -> IdentityVerifier:
    """Provide identity token verifier instance"""
    return IdentityVerifier()


def get_identity(
    authorization: Optional[str] = Header(default=None),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> Identity:
    """Verified claims of the bearer token"""
    return verifier.verify(parse_bearer(authorization))


def get_current_user(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> User:
    """Registered, active local user behind the bearer token"""
    return resolve_user(db, identity)


def require_admin(user: User = Depends(get_current_user)) -> User:
    ensure_admin(user)
    return user
