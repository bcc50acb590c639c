"""/v1/auth - registration and token verification"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from abaya_bank.api.dependencies import get_current_user, get_identity
from abaya_bank.api.v1.schemas import RegisterRequest, UserResponse
from abaya_bank.domain.models import Identity
from abaya_bank.infrastructure.database.models import User
from abaya_bank.infrastructure.database.session import get_db
from abaya_bank.services.users import register_user

router = APIRouter(prefix="/auth")


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    request_body: RegisterRequest,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    """
    Mirror the identity behind the bearer token as a bank user.

    The token must be valid; the user record must not exist yet.
    """
    user = register_user(db, identity, request_body.model_dump())
    return UserResponse.model_validate(user)


@router.post("/verify", response_model=UserResponse)
def verify(user: User = Depends(get_current_user)):
    """Validate the token and return the registered user"""
    return UserResponse.model_validate(user)


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)):
    return UserResponse.model_validate(user)
