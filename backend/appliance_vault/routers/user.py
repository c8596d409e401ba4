"""
User API endpoints: signup, signin, Google sign-in and profile.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile, status
from sqlalchemy.orm import Session

from appliance_vault.config import settings
from appliance_vault.core.errors import AuthError, ValidationError
from appliance_vault.core.rate_limit import limiter
from appliance_vault.database import get_db
from appliance_vault.dependencies import get_current_user
from appliance_vault.models.user import User
from appliance_vault.schemas import (
    GoogleLoginRequest,
    SigninRequest,
    SignupRequest,
    TokenResponse,
    UploadCheckResponse,
    UserProfile,
    UserProfileResponse,
    UserUpdate,
)
from appliance_vault.services.auth_service import auth_service
from appliance_vault.services.identity import GoogleIdentityVerifier, get_identity_verifier
from appliance_vault.services.upload_gate import UPLOAD_CHECK_RULES, check_uploads

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/google", response_model=TokenResponse, response_model_exclude_none=True)
@limiter.limit(settings.AUTH_RATE_LIMIT)
def google_login(
    request: Request,
    payload: GoogleLoginRequest,
    db: Session = Depends(get_db),
    verifier: GoogleIdentityVerifier = Depends(get_identity_verifier),
) -> Any:
    """
    Exchange a Google ID token for a local access token.
    Creates the user on first sign-in.
    """
    if not payload.credential:
        raise ValidationError.single("credential", "required", "No credential provided")

    identity = verifier.verify(payload.credential)
    user = auth_service.get_or_create_federated_user(db, identity)
    return {"token": auth_service.create_user_token(user), "message": "Authentication successful"}


@router.post(
    "/signup",
    response_model=TokenResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.AUTH_RATE_LIMIT)
def signup(request: Request, user_in: SignupRequest, db: Session = Depends(get_db)) -> Any:
    """
    Register a new user and return an access token.
    """
    user = auth_service.create_user(
        db,
        username=user_in.username,
        first_name=user_in.first_name,
        last_name=user_in.last_name,
        password=user_in.password,
    )
    return {"token": auth_service.create_user_token(user), "message": "User created successfully!"}


@router.post("/signin", response_model=TokenResponse, response_model_exclude_none=True)
@limiter.limit(settings.AUTH_RATE_LIMIT)
def signin(request: Request, credentials: SigninRequest, db: Session = Depends(get_db)) -> Any:
    """
    Password sign-in.
    """
    user = auth_service.authenticate_user(
        db, username=credentials.username, password=credentials.password
    )
    if not user:
        raise AuthError("credentials")
    return {"token": auth_service.create_user_token(user)}


@router.post("/upload", response_model=UploadCheckResponse)
async def check_upload(file: Optional[UploadFile] = File(None)) -> Any:
    """
    Check a single file against the upload rules without storing it.
    """
    accepted = await check_uploads({"file": file}, UPLOAD_CHECK_RULES)
    upload = accepted["file"]
    return {
        "message": "File uploaded successfully",
        "file": {
            "field_name": upload.field,
            "file_name": upload.file_name,
            "content_type": upload.content_type,
            "file_size": upload.size,
        },
    }


@router.get("/", response_model=UserProfileResponse, response_model_exclude_none=True)
def read_profile(current_user: User = Depends(get_current_user)) -> Any:
    """
    Get current user.
    """
    return {"user": UserProfile.model_validate(current_user)}


@router.put("/", response_model=UserProfileResponse)
def update_profile(
    changes: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    """
    Update first/last name and/or password of the current user.
    """
    user = auth_service.update_profile(db, current_user, changes.model_dump(exclude_unset=True))
    return {"message": "Profile updated successfully", "user": UserProfile.model_validate(user)}
