"""Credential store: user records, password hashes and OAuth linkage."""
import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..auth import hash_password, verify_password
from ..config import settings
from ..errors import Conflict, NotFound, Unauthenticated, ValidationError

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "phone",
    "address",
    "bio",
    "skills",
    "experience_years",
    "education",
    "resume_url",
)


@dataclass
class OAuthProfile:
    provider: models.AuthProvider
    provider_id: str
    email: str
    name: str
    avatar_url: str | None = None


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user(db: Session, user_id: int) -> models.User | None:
    return db.get(models.User, user_id)


def get_user_by_email(db: Session, email: str) -> models.User | None:
    return db.query(models.User).filter(models.User.email == normalize_email(email)).first()


def get_user_by_provider(
    db: Session, provider: models.AuthProvider, provider_id: str
) -> models.User | None:
    return (
        db.query(models.User)
        .filter(models.User.auth_provider == provider, models.User.provider_id == provider_id)
        .first()
    )


def create_user(
    db: Session,
    email: str,
    password_hash: str | None,
    name: str,
    role: models.UserRole = models.UserRole.USER,
    auth_provider: models.AuthProvider = models.AuthProvider.LOCAL,
    provider_id: str | None = None,
    avatar_url: str | None = None,
    email_verified: bool = False,
) -> models.User:
    if auth_provider == models.AuthProvider.LOCAL and not password_hash:
        raise ValidationError.for_field("password", "Local accounts require a password")
    if auth_provider != models.AuthProvider.LOCAL and not provider_id:
        raise ValidationError.for_field("provider_id", "OAuth accounts require a provider id")

    email = normalize_email(email)
    if get_user_by_email(db, email):
        raise Conflict("User with this email already exists")

    user = models.User(
        email=email,
        password_hash=password_hash,
        name=name,
        role=role,
        auth_provider=auth_provider,
        provider_id=provider_id,
        avatar_url=avatar_url,
        email_verified=email_verified,
    )
    user.profile = models.UserProfile(skills=[])
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent insert of the same email.
        db.rollback()
        raise Conflict("User with this email already exists")
    db.refresh(user)
    return user


def register_user(
    db: Session, email: str, password: str, name: str, role: models.UserRole
) -> models.User:
    if get_user_by_email(db, email):
        raise Conflict("User with this email already exists")
    return create_user(db, email, hash_password(password), name, role=role)


def authenticate_user(db: Session, email: str, password: str) -> models.User | None:
    user = get_user_by_email(db, email)
    if not user:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def get_or_create_oauth_user(db: Session, profile: OAuthProfile) -> models.User:
    user = get_user_by_provider(db, profile.provider, profile.provider_id)
    if user:
        return user
    user = get_user_by_email(db, profile.email)
    if user:
        return user
    logger.info("Creating %s account for %s", profile.provider.value, profile.email)
    return create_user(
        db,
        profile.email,
        None,
        profile.name or profile.email.split("@")[0],
        auth_provider=profile.provider,
        provider_id=profile.provider_id,
        avatar_url=profile.avatar_url,
        email_verified=True,
    )


def update_password(db: Session, user: models.User, new_password: str) -> None:
    user.password_hash = hash_password(new_password)
    db.commit()


def change_password(db: Session, user_id: int, current_password: str, new_password: str) -> None:
    user = get_user(db, user_id)
    if not user:
        raise NotFound("User not found")
    if not verify_password(current_password, user.password_hash):
        raise Unauthenticated("Current password is incorrect")
    update_password(db, user, new_password)


def update_profile(db: Session, user_id: int, fields: dict) -> models.User:
    user = get_user(db, user_id)
    if not user:
        raise NotFound("User not found")

    if fields.get("name") is not None:
        user.name = fields["name"]
    if user.profile is None:
        user.profile = models.UserProfile(skills=[])
    for key in PROFILE_FIELDS:
        if key in fields:
            value = fields[key]
            if key == "skills":
                value = [s.strip() for s in (value or []) if s.strip()]
            setattr(user.profile, key, value)

    db.commit()
    db.refresh(user)
    return user


def profile_view(user: models.User) -> dict:
    data = {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "email_verified": user.email_verified,
        "auth_provider": user.auth_provider,
        "avatar_url": user.avatar_url,
        "created_at": user.created_at,
    }
    profile = user.profile
    for key in PROFILE_FIELDS:
        data[key] = getattr(profile, key) if profile else None
    data["skills"] = data["skills"] or []
    return data


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_password_reset_token(db: Session, user: models.User) -> str:
    token = secrets.token_urlsafe(32)
    db.query(models.PasswordResetToken).filter(
        models.PasswordResetToken.user_id == user.id
    ).delete()
    db.add(
        models.PasswordResetToken(
            user_id=user.id,
            token_hash=_digest(token),
            expires_at=models.utcnow() + timedelta(minutes=settings.password_reset_expire_minutes),
        )
    )
    db.commit()
    return token


def reset_password(db: Session, token: str, new_password: str) -> models.User:
    row = (
        db.query(models.PasswordResetToken)
        .filter(
            models.PasswordResetToken.token_hash == _digest(token),
            models.PasswordResetToken.expires_at > models.utcnow(),
        )
        .first()
    )
    if not row:
        raise ValidationError.for_field("token", "Reset token is invalid or expired")

    user = get_user(db, row.user_id)
    if not user:
        raise ValidationError.for_field("token", "Reset token is invalid or expired")
    user.password_hash = hash_password(new_password)
    db.query(models.PasswordResetToken).filter(
        models.PasswordResetToken.user_id == user.id
    ).delete()
    db.commit()
    return user
