import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from uuid import UUID

from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from travelmate.core.settings import settings
from travelmate.db.session import get_session
from travelmate.db.models import User

# Set up logging
logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

# In-memory token blacklist (use Redis in production)
token_blacklist = set()

# Performance timer
@asynccontextmanager
async def performance_timer(operation: str):
    """Context manager for timing operations"""
    start = time.time()
    try:
        yield
    finally:
        duration = time.time() - start
        logger.info(f"{operation} completed in {duration:.2f}s")

class PasswordValidator:
    """Password validation utility"""

    @staticmethod
    def validate_password(password: str) -> Dict[str, Any]:
        """Validate password strength and return detailed feedback"""
        errors = []
        warnings = []

        if len(password) < settings.PASSWORD_MIN_LENGTH:
            errors.append(f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters")

        if settings.PASSWORD_REQUIRE_UPPERCASE and not any(c.isupper() for c in password):
            errors.append("Password must contain at least one uppercase letter")

        if settings.PASSWORD_REQUIRE_NUMBER and not any(c.isdigit() for c in password):
            errors.append("Password must contain at least one number")

        if len(password) < 8:
            warnings.append("Consider using a longer password for better security")

        return {
            "is_valid": len(errors) == 0,
            "errors": errors,
            "warnings": warnings,
        }

def verify_password(plain: str, hashed: str) -> bool:
    """Verify a password against its hash"""
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError as e:
        # Malformed or foreign hash
        logger.error(f"Password verification error: {e}")
        return False

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def _create_token(data: dict, secret: str, token_type: str, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire, "type": token_type})
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token"""
    token = _create_token(
        data,
        settings.JWT_SECRET,
        "access",
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    logger.info("Access token created", extra={'user_id': data.get('sub')})
    return token

def create_refresh_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT refresh token"""
    token = _create_token(
        data,
        settings.JWT_REFRESH_SECRET,
        "refresh",
        expires_delta or timedelta(minutes=settings.REFRESH_TOKEN_EXPIRE_MINUTES),
    )
    logger.info("Refresh token created", extra={'user_id': data.get('sub')})
    return token

def issue_tokens(user: User) -> Dict[str, Any]:
    """Access + refresh pair in the shape of the Token schema"""
    return {
        "access_token": create_access_token({"sub": str(user.id), "username": user.username}),
        "refresh_token": create_refresh_token({"sub": str(user.id)}),
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    }

def blacklist_token(token: str) -> None:
    token_blacklist.add(token)
    logger.info("Token added to blacklist")

def is_token_blacklisted(token: str) -> bool:
    """Check if token is blacklisted"""
    return token in token_blacklist

def _decode_subject(token: str, secret: str, expected_type: str) -> Optional[UUID]:
    """User id carried by a valid token of the expected type, else None"""
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT decode error: {e}")
        return None

    user_id = payload.get("sub")
    if not user_id or payload.get("type") != expected_type:
        logger.warning("Invalid token payload")
        return None
    try:
        return UUID(str(user_id))
    except ValueError:
        logger.warning(f"Token subject is not a user id: {user_id}")
        return None

async def authenticate_user(
    username_or_email: str,
    password: str,
    session: AsyncSession
) -> Optional[User]:
    """Look up a user by username or email and check the password"""
    async with performance_timer("user_authentication"):
        username_or_email = username_or_email.strip().lower()

        result = await session.execute(
            select(User).where(
                (User.username == username_or_email) | (User.email == username_or_email)
            )
        )
        user = result.scalars().first()

        if not user:
            logger.warning(f"Authentication failed: user not found - {username_or_email}")
            return None

        if not verify_password(password, user.password_hash):
            logger.warning(f"Authentication failed: invalid password for user - {username_or_email}")
            return None

        logger.info(f"User authenticated successfully: {user.username}")
        return user

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_session),
) -> User:
    """Get current user from a bearer access token"""
    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if is_token_blacklisted(token):
        logger.warning("Attempted to use blacklisted token")
        raise credentials_exc

    user_id = _decode_subject(token, settings.JWT_SECRET, "access")
    if user_id is None:
        raise credentials_exc

    user = await session.get(User, user_id)
    if not user:
        logger.warning(f"User not found for token: {user_id}")
        raise credentials_exc
    return user

async def get_current_user_from_refresh_token(
    token: str,
    session: AsyncSession,
) -> User:
    """Get user from refresh token"""
    if is_token_blacklisted(token):
        logger.warning("Attempted to use blacklisted refresh token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token"
        )

    user_id = _decode_subject(token, settings.JWT_REFRESH_SECRET, "refresh")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token"
        )

    user = await session.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )
    return user

async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized as an admin"
        )
    return current_user

async def require_store_admin(current_user: User = Depends(get_current_user)) -> User:
    """Admins and users whose store-admin request was approved"""
    if not current_user.is_store_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized as a store admin"
        )
    return current_user

def validate_password_strength(password: str) -> Dict[str, Any]:
    """Validate password strength and return detailed feedback"""
    return PasswordValidator.validate_password(password)
