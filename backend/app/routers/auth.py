"""Authentication API routes."""
import logging
from fastapi import APIRouter, status

from app.dependencies import CurrentUser, DBSession
from app.schemas.travel_request import MessageOut
from app.schemas.user import AuthResponse, TokenResponse, UserLogin, UserOut, UserRegister
from app.services import auth_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: UserRegister, db: DBSession):
    """Create a regular user account and return a bearer token."""
    user = auth_service.register(db, payload)
    return AuthResponse(
        message="User registered successfully",
        user=UserOut.model_validate(user),
        token=auth_service.create_access_token(user),
    )


@router.post("/login", response_model=AuthResponse)
def login(payload: UserLogin, db: DBSession):
    user = auth_service.authenticate(db, payload.email, payload.password)
    logger.info("User %s logged in", user.user_id)
    return AuthResponse(
        message="Login successful",
        user=UserOut.model_validate(user),
        token=auth_service.create_access_token(user),
    )


@router.get("/me", response_model=UserOut)
def me(actor: CurrentUser):
    return UserOut.model_validate(actor)


@router.post("/refresh", response_model=TokenResponse)
def refresh(actor: CurrentUser):
    """Issue a fresh token for a still-valid one."""
    return TokenResponse(token=auth_service.create_access_token(actor))


@router.post("/logout", response_model=MessageOut)
def logout(actor: CurrentUser):
    # Tokens are stateless; the client discards its copy
    logger.info("User %s logged out", actor.user_id)
    return MessageOut(message="Logout successful")
