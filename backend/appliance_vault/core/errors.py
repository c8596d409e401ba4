"""
Domain exceptions and their HTTP mapping.

Routers and services raise these; handlers registered in main.py turn them
into JSON responses.
"""

from typing import Any, Dict, List, Optional

from fastapi import status


class AppError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message}


class FieldError(dict):
    """A single field-level validation failure: field, rule and message."""

    def __init__(self, field: str, rule: str, message: str):
        super().__init__(field=field, rule=rule, message=message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input data"

    def __init__(self, errors: List[FieldError], message: Optional[str] = None):
        super().__init__(message)
        self.errors = list(errors)

    @classmethod
    def single(cls, field: str, rule: str, message: str) -> "ValidationError":
        return cls([FieldError(field, rule, message)], message=message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "errors": self.errors}


class AuthError(AppError):
    """Missing, invalid or expired credential."""

    status_code = status.HTTP_401_UNAUTHORIZED

    MESSAGES = {
        "missing": "No token provided",
        "invalid": "Could not validate credentials",
        "expired": "Token has expired",
        "credentials": "Invalid credentials",
    }

    def __init__(self, reason: str = "invalid", message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or self.MESSAGES.get(reason, self.MESSAGES["invalid"]))

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "reason": self.reason}


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class CodecError(AppError):
    default_message = "Failed to process file"


def field_errors_from_pydantic(errors: List[Dict[str, Any]]) -> List[FieldError]:
    """Convert pydantic/FastAPI error dicts into field errors."""
    result = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "form")]
        result.append(
            FieldError(
                field=".".join(loc) or "__root__",
                rule=err.get("type", "invalid"),
                message=err.get("msg", "Invalid value"),
            )
        )
    return result
