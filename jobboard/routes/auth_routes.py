import logging

from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import Identity, create_access_token, get_current_identity
from ..config import settings
from ..database import get_db
from ..errors import NotFound, Unauthenticated
from ..services import email_service, oauth, users

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _issue(user: models.User) -> str:
    return create_access_token(user.id, user.email, user.role)


def _session(user: models.User, message: str) -> dict:
    return {
        "success": True,
        "message": message,
        "data": {"user": user, "token": _issue(user)},
    }


@router.post(
    "/register",
    response_model=schemas.ApiResponse[schemas.AuthData],
    status_code=status.HTTP_201_CREATED,
)
def register_user(user_in: schemas.RegisterRequest, db: Session = Depends(get_db)):
    user = users.register_user(db, user_in.email, user_in.password, user_in.name, user_in.role)
    return _session(user, "User registered successfully")


@router.post("/login", response_model=schemas.ApiResponse[schemas.AuthData])
def login(credentials: schemas.LoginRequest, db: Session = Depends(get_db)):
    user = users.authenticate_user(db, credentials.email, credentials.password)
    if not user:
        raise Unauthenticated("Invalid email or password")
    return _session(user, "Login successful")


@router.post("/token", response_model=schemas.Token)
def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    user = users.authenticate_user(db, form_data.username, form_data.password)
    if not user:
        raise Unauthenticated("Incorrect email or password")
    return {"access_token": _issue(user), "token_type": "bearer"}


@router.get("/me", response_model=schemas.ApiResponse[schemas.UserData])
def read_users_me(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    user = users.get_user(db, identity.id)
    if not user:
        raise NotFound("User not found")
    return {"success": True, "data": {"user": users.profile_view(user)}}


@router.post("/google", response_model=schemas.ApiResponse[schemas.AuthData])
def google_login(payload: schemas.OAuthLoginRequest, db: Session = Depends(get_db)):
    profile = oauth.fetch_google_profile(access_token=payload.access_token, code=payload.code)
    user = users.get_or_create_oauth_user(db, profile)
    return _session(user, "Google login successful")


@router.post("/linkedin", response_model=schemas.ApiResponse[schemas.AuthData])
def linkedin_login(payload: schemas.OAuthLoginRequest, db: Session = Depends(get_db)):
    profile = oauth.fetch_linkedin_profile(payload.access_token)
    user = users.get_or_create_oauth_user(db, profile)
    return _session(user, "LinkedIn login successful")


@router.put("/profile", response_model=schemas.ApiResponse[schemas.UserData])
def update_profile(
    profile_in: schemas.ProfileUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    user = users.update_profile(db, identity.id, profile_in.model_dump(exclude_unset=True))
    return {
        "success": True,
        "message": "Profile updated successfully",
        "data": {"user": users.profile_view(user)},
    }


@router.put("/change-password", response_model=schemas.ApiResponse[None])
def change_password(
    payload: schemas.ChangePasswordRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    users.change_password(db, identity.id, payload.current_password, payload.new_password)
    return {"success": True, "message": "Password changed successfully"}


@router.post("/refresh", response_model=schemas.ApiResponse[schemas.TokenData])
def refresh_token(identity: Identity = Depends(get_current_identity)):
    token = create_access_token(identity.id, identity.email, identity.role)
    return {"success": True, "data": {"token": token}}


@router.post("/logout", response_model=schemas.ApiResponse[None])
def logout(identity: Identity = Depends(get_current_identity)):
    # Tokens are stateless: the client discards its copy and the token simply
    # runs out at its expiry.
    return {"success": True, "message": "Logged out successfully"}


@router.post("/forgot-password", response_model=schemas.ApiResponse[dict])
def forgot_password(payload: schemas.ForgotPasswordRequest, db: Session = Depends(get_db)):
    message = "If an account exists for this email, password reset instructions have been sent."
    user = users.get_user_by_email(db, payload.email)
    if not user:
        return {"success": True, "message": message}

    token = users.create_password_reset_token(db, user)
    reset_link = f"{settings.frontend_url}/reset-password?token={token}"
    result = email_service.send_password_reset(user.email, user.name, reset_link)
    if not result["success"]:
        logger.warning("Password reset email for user %s was not delivered", user.id)

    data = {"reset_token": token} if settings.is_development else None
    return {"success": True, "message": message, "data": data}


@router.post("/reset-password", response_model=schemas.ApiResponse[None])
def reset_password(payload: schemas.ResetPasswordRequest, db: Session = Depends(get_db)):
    users.reset_password(db, payload.token, payload.new_password)
    return {
        "success": True,
        "message": "Password has been reset. Please log in with your new password.",
    }
