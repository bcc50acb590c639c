"""Local mirror of identity-provider users, profiles and admin user management"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from abaya_bank.domain.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from abaya_bank.domain.models import ROLE_ADMIN, ROLE_CUSTOMER, ROLES, Identity
from abaya_bank.infrastructure.database.models import Account, User
from abaya_bank.infrastructure.database.repositories import AccountRepository, UserRepository
from abaya_bank.infrastructure.database.session import atomic
from abaya_bank.services.access import ensure_admin
from abaya_bank.services.audit import RequestContext, record_audit
from abaya_bank.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "phone", "address", "profile_image")


def register_user(db: Session, identity: Identity, profile: Dict[str, Any]) -> User:
    """
    Mirror a verified identity as a local user.

    The admin role is granted only when the identity token itself carries a
    role=admin claim; a client cannot ask for it.

    Raises:
        ConflictError: Identity, email or NID/passport already registered
    """
    email = (profile.get("email") or identity.email or "").strip().lower()
    if not email:
        raise ValidationError("Email is required")
    nid = profile["nid_or_passport"].strip()

    users = UserRepository(db)
    existing = users.find_conflict(identity.uid, email, nid)
    if existing is not None:
        if existing.identity_uid == identity.uid:
            raise ConflictError("User with this identity already exists")
        if existing.email == email:
            raise ConflictError("Email already registered")
        raise ConflictError("NID/Passport already registered")

    with atomic(db):
        user = users.add(
            User(
                identity_uid=identity.uid,
                email=email,
                name=profile["name"].strip(),
                phone=profile["phone"].strip(),
                nid_or_passport=nid,
                role=ROLE_ADMIN if identity.role == ROLE_ADMIN else ROLE_CUSTOMER,
                address=profile.get("address"),
                last_login=utcnow(),
            )
        )

    logger.info("New user registered", extra={"user_id": str(user.id), "role": user.role})
    return user


def resolve_user(db: Session, identity: Identity) -> User:
    """
    Local user behind a verified token.

    Raises:
        NotFoundError: Identity never registered here
        PermissionDeniedError: Account deactivated by an admin
    """
    user = UserRepository(db).get_by_identity_uid(identity.uid)
    if user is None:
        raise NotFoundError("User not found. Please complete registration.")
    if not user.is_active:
        raise PermissionDeniedError("Account is deactivated. Please contact support.")

    user.last_login = utcnow()
    db.commit()
    return user


def get_user(db: Session, user_id: uuid.UUID) -> User:
    user = UserRepository(db).get(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def get_profile(db: Session, user: User) -> Tuple[User, List[Account]]:
    return user, AccountRepository(db).list_for_user(user.id)


def update_profile(db: Session, user: User, changes: Dict[str, Any]) -> User:
    """Apply the editable profile fields that were provided"""
    with atomic(db):
        for field_name in PROFILE_FIELDS:
            value = changes.get(field_name)
            if value:
                setattr(user, field_name, value)
    return user


def list_users(
    db: Session,
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Tuple[User, int]], int]:
    return UserRepository(db).list_users(search, is_active, page, limit)


def set_user_active(
    db: Session,
    admin: User,
    user_id: uuid.UUID,
    is_active: bool,
    reason: Optional[str] = None,
    context: Optional[RequestContext] = None,
) -> User:
    ensure_admin(admin)
    if user_id == admin.id and not is_active:
        raise ValidationError("You cannot deactivate your own account")

    with atomic(db):
        user = get_user(db, user_id)
        previous = user.is_active
        user.is_active = is_active

    logger.info(
        "User activation changed",
        extra={"user_id": str(user.id), "is_active": is_active, "admin_id": str(admin.id)},
    )
    record_audit(
        db,
        actor_id=admin.id,
        action="user_activated" if is_active else "user_deactivated",
        target_type="user",
        target_id=user.id,
        reason=reason,
        previous_state={"is_active": previous},
        new_state={"is_active": is_active},
        context=context,
    )
    return user


def change_user_role(
    db: Session,
    admin: User,
    user_id: uuid.UUID,
    role: str,
    reason: Optional[str] = None,
    context: Optional[RequestContext] = None,
) -> User:
    ensure_admin(admin)
    if role not in ROLES:
        raise ValidationError(f"Role must be one of: {', '.join(ROLES)}")
    if user_id == admin.id and role != ROLE_ADMIN:
        raise ValidationError("You cannot remove your own admin role")

    with atomic(db):
        user = get_user(db, user_id)
        previous = user.role
        user.role = role

    logger.info(
        "User role changed",
        extra={"user_id": str(user.id), "previous_role": previous, "new_role": role, "admin_id": str(admin.id)},
    )
    record_audit(
        db,
        actor_id=admin.id,
        action="user_role_changed",
        target_type="user",
        target_id=user.id,
        reason=reason,
        previous_state={"role": previous},
        new_state={"role": role},
        context=context,
    )
    return user
