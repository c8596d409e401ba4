"""
Security utilities including password hashing and JWT token generation.
"""

import secrets
import bcrypt
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt, JWTError, ExpiredSignatureError

from appliance_vault.config import settings
from appliance_vault.core.errors import AuthError

# bcrypt is used directly rather than through passlib

# JWT configuration
ALGORITHM = "HS256"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    if not hashed_password:
        return False
    if isinstance(plain_password, str):
        plain_password = plain_password.encode('utf-8')
    if isinstance(hashed_password, str):
        hashed_password = hashed_password.encode('utf-8')
    try:
        return bcrypt.checkpw(plain_password, hashed_password)
    except ValueError:
        # Malformed hash
        return False


def get_password_hash(password: str) -> str:
    """Generate a password hash."""
    if isinstance(password, str):
        password = password.encode('utf-8')
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password, salt)
    return hashed.decode('utf-8')


def generate_unusable_password() -> str:
    """Hash of a random secret nobody is ever told; used for federated users."""
    return get_password_hash(secrets.token_urlsafe(32))


def create_access_token(subject: Any, expires_delta: Optional[timedelta] = None) -> str:
    """Create a new JWT access token for the given subject (user id)."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    expire = datetime.now(timezone.utc) + expires_delta

    to_encode: Dict[str, Any] = {"sub": str(subject), "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> str:
    """
    Verify a token and return its subject.

    Raises AuthError with reason "expired" or "invalid".
    """
    if not token:
        raise AuthError("missing")
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        raise AuthError("expired")
    except JWTError:
        raise AuthError("invalid")

    subject = payload.get("sub")
    if not subject:
        raise AuthError("invalid")
    return subject
