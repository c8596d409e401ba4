"""
Asset pipeline: upload gate -> codec -> store on write, and the reverse on read.

Adding an appliance moves through RECEIVED -> VALIDATED -> COMPRESSED ->
PERSISTED. A request that fails a check ends in REJECTED before anything is
compressed or written; a compression failure aborts before the insert.
"""

import asyncio
import base64
import binascii
import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from fastapi import UploadFile
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from appliance_vault.core import codec, security
from appliance_vault.core.errors import AuthError, ValidationError, field_errors_from_pydantic
from appliance_vault.models.appliance import Appliance, ApplianceReceipt
from appliance_vault.schemas import ApplianceCreate
from appliance_vault.services.appliance_store import ApplianceStore, NewReceipt, StoredAsset
from appliance_vault.services.upload_gate import (
    ADD_APPLIANCE_RULES,
    APPEND_RECEIPT_RULES,
    ValidatedUpload,
    check_uploads,
)

logger = logging.getLogger(__name__)

DEFAULT_ORIGINAL_RECEIPT_NAME = "Original Receipt"
DEFAULT_INSURANCE_RECEIPT_NAME = "Insurance Receipt"
DEFAULT_ADDITIONAL_RECEIPT_NAME = "Additional Receipt"


class PipelineState(str, enum.Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    COMPRESSED = "compressed"
    PERSISTED = "persisted"
    REJECTED = "rejected"


@dataclass
class DecodedAsset:
    data: bytes
    degraded: bool = False


# --- Write path ---

async def encode_upload(upload: ValidatedUpload) -> StoredAsset:
    """Compress an upload in a worker thread and base64-encode it for storage."""
    compressed = await asyncio.to_thread(codec.compress, upload.data)
    return StoredAsset(
        data=base64.b64encode(compressed).decode("ascii"),
        content_type=upload.content_type,
        file_name=upload.file_name,
        file_size=upload.size,
    )


def _receipt_name(value: Optional[str], default: str) -> str:
    if value and value.strip():
        return value.strip()
    return default


async def add_appliance(
    db: Session,
    owner_id: int,
    form: Mapping[str, Any],
    uploads: Mapping[str, Optional[UploadFile]],
) -> Appliance:
    """
    Validate, compress and persist a new appliance.

    Args:
        db: Database session
        owner_id: Authenticated user id
        form: Text form fields (name, companyName, modelNumber, purchaseDate,
              originalReceiptType, insuranceReceiptType)
        uploads: productImage, originalReceipt, insuranceReceipt parts

    Raises:
        ValidationError: when the request is rejected; nothing is stored
        CodecError: when compression fails; nothing is stored
    """
    state = PipelineState.RECEIVED

    if uploads.get("originalReceipt") is None:
        logger.info(f"Add appliance {state.value} -> {PipelineState.REJECTED.value}: missing original receipt")
        raise ValidationError.single(
            "originalReceipt", "missing_original_receipt", "Original receipt is required"
        )

    errors = []
    fields = None
    try:
        fields = ApplianceCreate.model_validate(
            {
                "name": form.get("name"),
                "companyName": form.get("companyName"),
                "modelNumber": form.get("modelNumber"),
                "purchaseDate": form.get("purchaseDate"),
            }
        )
    except PydanticValidationError as e:
        errors.extend(field_errors_from_pydantic(e.errors()))

    accepted: Dict[str, ValidatedUpload] = {}
    try:
        accepted = await check_uploads(uploads, ADD_APPLIANCE_RULES)
    except ValidationError as e:
        errors.extend(e.errors)

    if errors:
        logger.info(f"Add appliance {PipelineState.REJECTED.value}: {[(err['field'], err['rule']) for err in errors]}")
        raise ValidationError(errors)
    state = PipelineState.VALIDATED

    receipt_parts = [("originalReceipt", "originalReceiptType", DEFAULT_ORIGINAL_RECEIPT_NAME)]
    if "insuranceReceipt" in accepted:
        receipt_parts.append(("insuranceReceipt", "insuranceReceiptType", DEFAULT_INSURANCE_RECEIPT_NAME))

    encoded = await asyncio.gather(
        encode_upload(accepted["productImage"]),
        *(encode_upload(accepted[field]) for field, _, _ in receipt_parts),
    )
    state = PipelineState.COMPRESSED

    product_image, receipt_assets = encoded[0], encoded[1:]
    receipts = [
        NewReceipt(name=_receipt_name(form.get(name_field), default), asset=asset)
        for (_, name_field, default), asset in zip(receipt_parts, receipt_assets)
    ]

    appliance = await asyncio.to_thread(
        ApplianceStore(db).create,
        owner_id=owner_id,
        name=fields.name,
        company_name=fields.company_name,
        model_number=fields.model_number,
        purchase_date=fields.purchase_date,
        product_image=product_image,
        receipts=receipts,
    )
    state = PipelineState.PERSISTED
    logger.info(f"Appliance {appliance.id} {state.value} with {len(receipts)} receipt(s)")
    return appliance


async def append_receipt(
    db: Session,
    owner_id: int,
    appliance_id: str,
    name: Optional[str],
    upload: Optional[UploadFile],
) -> ApplianceReceipt:
    """Attach one more receipt to an owned appliance."""
    store = ApplianceStore(db)
    await asyncio.to_thread(store.get_owned, appliance_id, owner_id)

    accepted = await check_uploads({"originalReceipt": upload}, APPEND_RECEIPT_RULES)
    asset = await encode_upload(accepted["originalReceipt"])
    return await asyncio.to_thread(
        store.append_receipt,
        appliance_id,
        owner_id,
        NewReceipt(name=_receipt_name(name, DEFAULT_ADDITIONAL_RECEIPT_NAME), asset=asset),
    )


# --- Read path ---

def decode_stored(data: str) -> DecodedAsset:
    """
    Turn stored base64 text back into the original bytes.

    Never raises: text that is not valid base64, or a corrupt compressed
    payload, comes back as the bytes that were stored.
    """
    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        return DecodedAsset(data=data.encode("utf-8"), degraded=True)

    result = codec.decompress_result(raw)
    return DecodedAsset(data=result.data, degraded=result.degraded)


def render_asset(data: str, content_type: str, file_name: str, file_size: int, label: str) -> Dict[str, Any]:
    """Transport form of an asset: decompressed bytes as base64."""
    decoded = decode_stored(data)
    if decoded.degraded:
        logger.warning(f"Returning stored bytes for {label}: decompression degraded")
        payload = data
    else:
        payload = base64.b64encode(decoded.data).decode("ascii")
    return {
        "data": payload,
        "content_type": content_type,
        "file_name": file_name,
        "file_size": file_size,
    }


def render_product_image(appliance: Appliance) -> Dict[str, Any]:
    return render_asset(
        appliance.image_data,
        appliance.image_content_type,
        appliance.image_file_name,
        appliance.image_file_size,
        label=f"appliance {appliance.id} image",
    )


def receipt_metadata(receipt: ApplianceReceipt) -> Dict[str, Any]:
    return {
        "id": receipt.id,
        "name": receipt.name,
        "content_type": receipt.content_type,
        "file_name": receipt.file_name,
        "file_size": receipt.file_size,
        "created_at": receipt.created_at,
    }


def render_summary(appliance: Appliance) -> Dict[str, Any]:
    return {
        "id": appliance.id,
        "name": appliance.name,
        "company_name": appliance.company_name,
        "product_image": render_product_image(appliance),
    }


def render_detail(appliance: Appliance) -> Dict[str, Any]:
    detail = render_summary(appliance)
    detail.update(
        model_number=appliance.model_number,
        purchase_date=appliance.purchase_date,
        receipts=[receipt_metadata(r) for r in appliance.receipts],
    )
    return detail


def open_receipt(
    db: Session, token: Optional[str], appliance_id: str, receipt_id: str
) -> Tuple[bytes, str, str]:
    """
    Resolve a receipt for direct download.

    The owner comes from the token passed in the query string rather than the
    Authorization header, so the link works in <img>/<iframe> embeds.

    Returns:
        (bytes, content_type, file_name)
    """
    subject = security.decode_access_token(token)
    try:
        owner_id = int(subject)
    except ValueError:
        raise AuthError("invalid")

    store = ApplianceStore(db)
    appliance = store.get_owned(appliance_id, owner_id)
    receipt = store.find_receipt(appliance, receipt_id)

    decoded = decode_stored(receipt.data)
    if decoded.degraded:
        logger.warning(f"Serving stored bytes for receipt {receipt_id}: decompression degraded")
    return decoded.data, receipt.content_type, receipt.file_name or "receipt"
