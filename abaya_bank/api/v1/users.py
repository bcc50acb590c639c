"""/v1/users - profile endpoints"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from abaya_bank.api.dependencies import get_current_user, require_admin
from abaya_bank.api.v1.schemas import AccountSummary, ProfileResponse, ProfileUpdateRequest, UserResponse
from abaya_bank.infrastructure.database.models import User
from abaya_bank.infrastructure.database.session import get_db
from abaya_bank.services.users import get_profile, get_user, update_profile

router = APIRouter(prefix="/users")


def _profile_response(db: Session, user: User) -> ProfileResponse:
    user, accounts = get_profile(db, user)
    return ProfileResponse(
        user=UserResponse.model_validate(user),
        accounts=[AccountSummary.model_validate(a) for a in accounts],
    )


@router.get("/profile", response_model=ProfileResponse)
def read_profile(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _profile_response(db, user)


@router.put("/profile", response_model=UserResponse)
def edit_profile(
    request_body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update name, phone, address or profile image"""
    user = update_profile(db, user, request_body.model_dump(exclude_none=True))
    return UserResponse.model_validate(user)


@router.get("/{user_id}", response_model=ProfileResponse)
def read_user(user_id: uuid.UUID, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Any user's profile and accounts (admin only)"""
    return _profile_response(db, get_user(db, user_id))
