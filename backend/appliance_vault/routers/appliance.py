"""
Appliance API endpoints: add, list, read, update, delete and receipts.
"""

import logging
from typing import Any, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from appliance_vault.database import get_db
from appliance_vault.dependencies import get_current_user
from appliance_vault.models.user import User
from appliance_vault.schemas import (
    ApplianceListResponse,
    ApplianceResponse,
    ApplianceUpdate,
    MessageResponse,
    ReceiptAppendResponse,
)
from appliance_vault.services import asset_pipeline
from appliance_vault.services.appliance_store import ApplianceStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/add", response_model=ApplianceResponse)
async def add_appliance(
    product_image: Optional[UploadFile] = File(None, alias="productImage"),
    original_receipt: Optional[UploadFile] = File(None, alias="originalReceipt"),
    insurance_receipt: Optional[UploadFile] = File(None, alias="insuranceReceipt"),
    name: Optional[str] = Form(None),
    company_name: Optional[str] = Form(None, alias="companyName"),
    model_number: Optional[str] = Form(None, alias="modelNumber"),
    purchase_date: Optional[str] = Form(None, alias="purchaseDate"),
    original_receipt_type: Optional[str] = Form(None, alias="originalReceiptType"),
    insurance_receipt_type: Optional[str] = Form(None, alias="insuranceReceiptType"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Create an appliance from a multipart form with a product image and receipts.
    """
    appliance = await asset_pipeline.add_appliance(
        db,
        owner_id=current_user.id,
        form={
            "name": name,
            "companyName": company_name,
            "modelNumber": model_number,
            "purchaseDate": purchase_date,
            "originalReceiptType": original_receipt_type,
            "insuranceReceiptType": insurance_receipt_type,
        },
        uploads={
            "productImage": product_image,
            "originalReceipt": original_receipt,
            "insuranceReceipt": insurance_receipt,
        },
    )
    return {
        "message": "Appliance added successfully!",
        "appliance": asset_pipeline.render_detail(appliance),
    }


@router.get("/get", response_model=ApplianceListResponse)
def list_appliances(
    name_filter: str = Query("", alias="filter"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List the current user's appliances, optionally filtered by name."""
    appliances = ApplianceStore(db).find_by_owner_and_filter(current_user.id, name_filter)
    return {"appliance": [asset_pipeline.render_summary(a) for a in appliances]}


@router.get("/{appliance_id}", response_model=ApplianceResponse)
def get_appliance(
    appliance_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get one appliance with its decompressed product image."""
    appliance = ApplianceStore(db).get_owned(appliance_id, current_user.id)
    return {"appliance": asset_pipeline.render_detail(appliance)}


@router.put("/{appliance_id}", response_model=ApplianceResponse)
def update_appliance(
    appliance_id: str,
    changes: ApplianceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Update appliance fields; fields not sent are left unchanged."""
    appliance = ApplianceStore(db).update_fields(
        appliance_id, current_user.id, changes.model_dump(exclude_unset=True)
    )
    return {
        "message": "Appliance updated successfully!",
        "appliance": asset_pipeline.render_detail(appliance),
    }


@router.delete("/{appliance_id}", response_model=MessageResponse)
def delete_appliance(
    appliance_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ApplianceStore(db).delete(appliance_id, current_user.id)
    return {"message": "Appliance deleted successfully"}


@router.put("/{appliance_id}/receipt", response_model=ReceiptAppendResponse)
async def add_receipt(
    appliance_id: str,
    original_receipt: Optional[UploadFile] = File(None, alias="originalReceipt"),
    name: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Attach another receipt to an appliance."""
    receipt = await asset_pipeline.append_receipt(
        db, current_user.id, appliance_id, name, original_receipt
    )
    appliance = receipt.appliance
    return {
        "message": "Receipt added successfully",
        "receipt": asset_pipeline.receipt_metadata(receipt),
        "appliance": asset_pipeline.render_detail(appliance),
    }


@router.get("/{appliance_id}/receipt/{receipt_id}")
def download_receipt(
    appliance_id: str,
    receipt_id: str,
    token: Optional[str] = Query(None),
    db: Session = Depends(get_db),
) -> Any:
    """
    Stream a receipt file.

    Authenticated by the ?token= query parameter instead of the Authorization
    header so the URL can be used directly as an <img> or <iframe> source.
    """
    data, content_type, file_name = asset_pipeline.open_receipt(
        db, token, appliance_id, receipt_id
    )
    return Response(
        content=data,
        media_type=content_type,
        headers={"Content-Disposition": _inline_disposition(file_name)},
    )


def _inline_disposition(file_name: str) -> str:
    ascii_name = file_name.encode("ascii", "replace").decode("ascii").replace('"', "")
    if ascii_name == file_name:
        return f'inline; filename="{file_name}"'
    return f"inline; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(file_name)}"
