"""
Request and response models for the user and appliance APIs.
"""

from typing import List, Optional
from datetime import datetime, date
from pydantic import BaseModel, ConfigDict, Field, EmailStr, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model speaking camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def parse_calendar_date(value):
    """Accept a date, a datetime or an ISO-8601 string naming a real calendar date."""
    if value is None or isinstance(value, date):
        return value.date() if isinstance(value, datetime) else value
    if not isinstance(value, str):
        raise ValueError("Invalid date format")
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        raise ValueError(f"Invalid date format: unable to parse date {value!r}")


def normalize_username(value: str) -> str:
    return value.strip().lower()


def blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


# bcrypt only looks at the first 72 bytes and refuses longer input
MAX_PASSWORD_BYTES = 72


def check_password_length(value: Optional[str]) -> Optional[str]:
    if value is not None and len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password cannot be longer than {MAX_PASSWORD_BYTES} bytes")
    return value


# --- User ---
class SignupRequest(CamelModel):
    username: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., max_length=50)
    password: str = Field(..., min_length=6)

    @field_validator("username", mode="after")
    @classmethod
    def _normalize_username(cls, v: str) -> str:
        return normalize_username(v)

    @field_validator("password", mode="after")
    @classmethod
    def _password_fits_bcrypt(cls, v: str) -> str:
        return check_password_length(v)

    @field_validator("first_name", "last_name", mode="after")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()


class SigninRequest(CamelModel):
    username: EmailStr
    password: str

    @field_validator("username", mode="after")
    @classmethod
    def _normalize_username(cls, v: str) -> str:
        return normalize_username(v)


class GoogleLoginRequest(CamelModel):
    credential: Optional[str] = None


class TokenResponse(CamelModel):
    token: str
    message: Optional[str] = None


class UserProfile(CamelModel):
    first_name: str
    last_name: str
    username: str


class UserProfileResponse(CamelModel):
    message: Optional[str] = None
    user: UserProfile


class UserUpdate(CamelModel):
    password: Optional[str] = Field(None, min_length=6)
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=50)

    @field_validator("password", mode="after")
    @classmethod
    def _password_fits_bcrypt(cls, v: Optional[str]) -> Optional[str]:
        return check_password_length(v)


class UploadedFileInfo(CamelModel):
    field_name: str
    file_name: str
    content_type: str
    file_size: int


class UploadCheckResponse(CamelModel):
    message: str
    file: UploadedFileInfo


# --- Appliance ---
class ApplianceCreate(CamelModel):
    name: str = Field(..., min_length=1)
    company_name: Optional[str] = None
    model_number: str = Field(..., min_length=1)
    purchase_date: date

    @field_validator("name", "model_number", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("company_name", mode="before")
    @classmethod
    def _company_name(cls, v):
        v = blank_to_none(v)
        return v.strip() if isinstance(v, str) else v

    @field_validator("purchase_date", mode="before")
    @classmethod
    def _purchase_date(cls, v):
        return parse_calendar_date(v)


class ApplianceUpdate(CamelModel):
    """Partial update; fields left out of the request are not touched."""

    name: Optional[str] = Field(None, min_length=1)
    company_name: Optional[str] = None
    model_number: Optional[str] = Field(None, min_length=1)
    purchase_date: Optional[date] = None

    @field_validator("name", "model_number", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("company_name", mode="before")
    @classmethod
    def _company_name(cls, v):
        v = blank_to_none(v)
        return v.strip() if isinstance(v, str) else v

    @field_validator("purchase_date", mode="before")
    @classmethod
    def _purchase_date(cls, v):
        return parse_calendar_date(v)

    @field_validator("name", "model_number", "purchase_date", mode="after")
    @classmethod
    def _not_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


class AssetResponse(CamelModel):
    data: str
    content_type: str
    file_name: str
    file_size: int


class ReceiptMetadata(CamelModel):
    id: str
    name: str
    content_type: str
    file_name: str
    file_size: int
    created_at: datetime


class ApplianceSummary(CamelModel):
    id: str
    name: str
    company_name: Optional[str] = None
    product_image: AssetResponse


class ApplianceDetail(ApplianceSummary):
    model_number: str
    purchase_date: date
    receipts: List[ReceiptMetadata] = []


class ApplianceListResponse(CamelModel):
    appliance: List[ApplianceSummary]


class ApplianceResponse(CamelModel):
    message: Optional[str] = None
    appliance: ApplianceDetail


class ReceiptAppendResponse(CamelModel):
    message: str
    receipt: ReceiptMetadata
    appliance: ApplianceDetail


class MessageResponse(CamelModel):
    message: str
