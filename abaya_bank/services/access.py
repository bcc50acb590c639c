"""Ownership and role checks shared by the services"""

import logging

from abaya_bank.domain.exceptions import PermissionDeniedError
from abaya_bank.domain.models import ROLE_ADMIN

logger = logging.getLogger(__name__)


def is_admin(user) -> bool:
    return user.role == ROLE_ADMIN


def ensure_admin(user) -> None:
    if not is_admin(user):
        logger.warning(f"Unauthorized access attempt by user {user.id} with role {user.role}")
        raise PermissionDeniedError("Access denied. Insufficient permissions.")


def ensure_owner(user, resource) -> None:
    """Only the owning user may move money on a resource"""
    if resource.user_id != user.id:
        logger.warning(f"User {user.id} attempted to act on resource owned by {resource.user_id}")
        raise PermissionDeniedError("Access denied")


def ensure_owner_or_admin(user, resource) -> None:
    """Admins may view any resource; customers only their own"""
    if not is_admin(user):
        ensure_owner(user, resource)
