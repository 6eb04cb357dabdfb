from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import settings
from .errors import Forbidden, InvalidToken, Unauthenticated
from .models import UserRole

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/token", auto_error=False)


@dataclass(frozen=True)
class Identity:
    """The caller as described by a verified token.

    Only id, email and role travel in the token; anything else about the user
    has to be read from the database.
    """

    id: int
    email: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def can_manage(self, owner_id: int) -> bool:
        return self.is_admin or self.id == owner_id


def hash_password(password: str) -> str:
    return pwd_context.hash(password[:72])


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password[:72], hashed_password)


def create_access_token(
    user_id: int,
    email: str,
    role: UserRole | str,
    expires_delta: timedelta | None = None,
    now: datetime | None = None,
) -> str:
    issued_at = now or datetime.now(timezone.utc)
    expires = issued_at + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode = {
        "sub": str(user_id),
        "email": email,
        "role": UserRole(role).value,
        "iat": int(issued_at.timestamp()),
        "exp": int(expires.timestamp()),
    }
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def verify_access_token(token: str) -> Identity:
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as exc:
        raise InvalidToken(str(exc)) from exc

    try:
        return Identity(
            id=int(payload["sub"]),
            email=payload["email"],
            role=UserRole(payload["role"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidToken("Token is missing required claims") from exc


async def get_current_identity(
    request: Request,
    token: str | None = Depends(oauth2_scheme),
) -> Identity:
    if not token:
        raise Unauthenticated("Access token required")
    try:
        identity = verify_access_token(token)
    except InvalidToken:
        raise Forbidden("Invalid or expired token")
    request.state.identity = identity
    return identity


async def get_optional_identity(
    request: Request,
    token: str | None = Depends(oauth2_scheme),
) -> Identity | None:
    if not token:
        return None
    try:
        identity = verify_access_token(token)
    except InvalidToken:
        return None
    request.state.identity = identity
    return identity


def require_role(*roles: UserRole):
    allowed = frozenset(roles)

    async def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in allowed:
            raise Forbidden("Insufficient permissions")
        return identity

    return dependency


get_current_admin = require_role(UserRole.ADMIN)
get_current_employer = require_role(UserRole.EMPLOYER, UserRole.ADMIN)
