"""Auth provider — password hashing, bearer tokens, registration and login.

Tokens are HS256 JWTs carrying the user id (``sub``) and role. Signing and
verification are delegated to python-jose; hashing to passlib.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.events.dispatcher import EventDispatcher, dispatcher as default_dispatcher
from app.events.types import UserRegistered
from app.exceptions import Conflict, Unauthenticated
from app.models.user import User, UserRole
from app.schemas.user import UserRegister, UserSummary

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user: User, lifetime_minutes: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    minutes = lifetime_minutes if lifetime_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    claims = {
        "sub": user.user_id,
        "role": user.role.value,
        "type": "access",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=minutes)).timestamp()),
    }
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Validate signature, expiry and token type; return the claims."""
    try:
        claims = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise Unauthenticated("Token has expired")
    except JWTError as exc:
        logger.warning("JWT validation failed: %s", exc)
        raise Unauthenticated("Token is invalid")

    if claims.get("type") != "access" or not claims.get("sub"):
        raise Unauthenticated("Token is invalid")
    return claims


def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.user_id == user_id).first()


def resolve_actor(db: Session, token: str) -> User:
    """Turn a bearer token into the current user."""
    claims = decode_access_token(token)
    user = get_user(db, claims["sub"])
    if user is None:
        raise Unauthenticated("Token is invalid")
    return user


def register(
    db: Session,
    payload: UserRegister,
    events: EventDispatcher = default_dispatcher,
) -> User:
    """Create a regular user account. Registration never grants admin."""
    email = payload.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise Conflict("Email already registered")

    user = User(
        name=payload.name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
        role=UserRole.user,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Email already registered")
    db.refresh(user)
    logger.info("Registered user %s (%s)", user.user_id, user.email)
    events.dispatch(UserRegistered(user=UserSummary.model_validate(user).model_dump(mode="json")))
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == email.lower()).first()
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Failed login for %s", email)
        raise Unauthenticated("Invalid credentials")
    return user
