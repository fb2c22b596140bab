import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.orm import Session

from smartnotes.api.config import get_settings
from smartnotes.api.database import get_db
from smartnotes.api.errors import Unauthorized, ValidationError
from smartnotes.api.models import User

logger = logging.getLogger(__name__)

# Setup password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Bearer scheme; missing headers are reported by get_current_user, not FastAPI
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{get_settings().api_prefix}/auth/login", auto_error=False)

ALGORITHM = "HS256"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a plaintext password."""
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT access token."""
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(tz=timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def issue_token(user: User) -> str:
    return create_access_token({"sub": str(user.id)})


# PUBLIC_INTERFACE
def register_user(db: Session, name: str, email: str, password: str) -> User:
    """
    Create a user account.

    Raises:
        ValidationError if the name is blank or the email is already registered.
    """
    name = name.strip()
    email = email.strip().lower()
    if not name:
        raise ValidationError("Name is required")
    if db.scalar(select(User.id).where(User.email == email)) is not None:
        raise ValidationError("User already exists")
    user = User(name=name, email=email, password_hash=get_password_hash(password))
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User registered", extra={"user_id": user.id})
    return user


# PUBLIC_INTERFACE
def authenticate_user(db: Session, email: str, password: str) -> User:
    """
    Resolve credentials to a user.

    Raises:
        Unauthorized when the email is unknown or the password does not match.
    """
    user = db.scalar(select(User).where(User.email == email.strip().lower()))
    if not user or not verify_password(password, user.password_hash):
        logger.info("Login rejected")
        raise Unauthorized("Invalid email or password")
    return user


# PUBLIC_INTERFACE
def get_current_user(token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    """
    Dependency that returns the currently authenticated user based on JWT bearer token.

    Raises:
        Unauthorized if the token is missing, malformed, expired, or its user is gone.
    """
    if not token:
        raise Unauthorized("Not authorized, no token")
    try:
        payload = jwt.decode(token, get_settings().secret_key, algorithms=[ALGORITHM])
        subject = payload.get("sub")
        if subject is None:
            raise Unauthorized("Not authorized, token failed")
        user_id = int(subject)
    except (JWTError, ValueError):
        raise Unauthorized("Not authorized, token failed")
    user = db.get(User, user_id)
    if user is None:
        raise Unauthorized("Not authorized, token failed")
    return user
