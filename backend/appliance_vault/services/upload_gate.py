"""
Request-time checks for uploaded files.

Every multipart part is checked for presence, content type and size before
any compression or storage work happens. All violations are collected and
raised together as one ValidationError.
"""

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from fastapi import UploadFile

from appliance_vault.config import settings
from appliance_vault.core.errors import FieldError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadRule:
    field: str
    required: bool = True
    allowed_content_types: Optional[Sequence[str]] = None
    allow_extension_fallback: bool = False

    @property
    def content_types(self) -> Sequence[str]:
        return self.allowed_content_types or settings.ALLOWED_CONTENT_TYPES


@dataclass
class ValidatedUpload:
    field: str
    file_name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


ADD_APPLIANCE_RULES = (
    UploadRule("productImage", required=True),
    UploadRule("originalReceipt", required=True),
    UploadRule("insuranceReceipt", required=False),
)

APPEND_RECEIPT_RULES = (UploadRule("originalReceipt", required=True),)

UPLOAD_CHECK_RULES = (UploadRule("file", required=True, allow_extension_fallback=True),)


def _content_type_from_extension(file_name: str) -> Optional[str]:
    ext = Path(file_name or "").suffix.lower()
    if ext not in settings.ALLOWED_EXTENSIONS:
        return None
    return mimetypes.guess_type(f"file{ext}")[0]


def resolve_content_type(rule: UploadRule, upload: UploadFile) -> Optional[str]:
    """Return the accepted content type for an upload, or None if rejected."""
    declared = (upload.content_type or "").split(";")[0].strip().lower()
    if declared in rule.content_types:
        return declared
    if rule.allow_extension_fallback:
        guessed = _content_type_from_extension(upload.filename)
        if guessed in rule.content_types:
            return guessed
    return None


async def check_uploads(
    parts: Mapping[str, Optional[UploadFile]],
    rules: Sequence[UploadRule],
    max_size: Optional[int] = None,
) -> Dict[str, ValidatedUpload]:
    """
    Check uploaded parts against rules.

    Args:
        parts: field name -> uploaded file (None when the field was not sent)
        rules: which fields are expected and how to check them
        max_size: size ceiling in bytes, defaults to settings.MAX_UPLOAD_SIZE

    Returns:
        Validated uploads (with their bytes) for every present field.

    Raises:
        ValidationError listing each field and the rule it failed.
    """
    if max_size is None:
        max_size = settings.MAX_UPLOAD_SIZE

    errors: List[FieldError] = []
    accepted: Dict[str, ValidatedUpload] = {}

    for rule in rules:
        upload = parts.get(rule.field)
        if upload is None:
            if rule.required:
                errors.append(FieldError(rule.field, "required", f"{rule.field} is required"))
            continue

        content_type = resolve_content_type(rule, upload)
        if content_type is None:
            errors.append(
                FieldError(
                    rule.field,
                    "content_type",
                    f"Invalid file type {upload.content_type!r}. "
                    f"Allowed: {', '.join(rule.content_types)}",
                )
            )

        # Read one byte past the ceiling so oversized parts are detected
        # without pulling everything into memory.
        data = await upload.read(max_size + 1)
        if len(data) > max_size:
            errors.append(
                FieldError(
                    rule.field,
                    "max_size",
                    f"File too large. Max size: {max_size / 1024 / 1024:g} MB",
                )
            )
            continue

        if content_type is not None:
            accepted[rule.field] = ValidatedUpload(
                field=rule.field,
                file_name=upload.filename or rule.field,
                content_type=content_type,
                data=data,
            )

    if errors:
        logger.info(f"Upload rejected: {[(e['field'], e['rule']) for e in errors]}")
        raise ValidationError(errors, message="Invalid file upload")

    return accepted
