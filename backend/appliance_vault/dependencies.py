"""
Shared API dependencies.
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from appliance_vault.database import get_db
from appliance_vault.config import settings
from appliance_vault.services.auth_service import auth_service
from appliance_vault.core import security
from appliance_vault.core.errors import AuthError
from appliance_vault.models.user import User

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_PREFIX}/user/signin", auto_error=False
)


def resolve_user(db: Session, token: Optional[str]) -> User:
    """Decode a local access token and load its user."""
    subject = security.decode_access_token(token)
    user = auth_service.get_user_by_id(db, subject)
    if user is None:
        raise AuthError("invalid")
    return user


def get_current_user(
    db: Session = Depends(get_db), token: Optional[str] = Depends(oauth2_scheme)
) -> User:
    """
    Validate the bearer access token and return current user.
    """
    return resolve_user(db, token)
