"""
Owner-scoped persistence for appliances and their receipts.

Every lookup filters on owner_id; an appliance owned by someone else is
indistinguishable from one that does not exist.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from appliance_vault.core.errors import NotFoundError
from appliance_vault.models.appliance import Appliance, ApplianceReceipt

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "company_name", "model_number", "purchase_date")


@dataclass
class StoredAsset:
    """An encoded asset ready to be written: data is base64 text."""

    data: str
    content_type: str
    file_name: str
    file_size: int


@dataclass
class NewReceipt:
    name: str
    asset: StoredAsset


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _build_receipt(receipt: NewReceipt, position: int) -> ApplianceReceipt:
    return ApplianceReceipt(
        position=position,
        name=receipt.name,
        data=receipt.asset.data,
        content_type=receipt.asset.content_type,
        file_name=receipt.asset.file_name,
        file_size=receipt.asset.file_size,
    )


class ApplianceStore:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        owner_id: int,
        name: str,
        model_number: str,
        purchase_date: date,
        company_name: Optional[str],
        product_image: StoredAsset,
        receipts: Sequence[NewReceipt],
    ) -> Appliance:
        """Insert an appliance with its image and receipts in one commit."""
        appliance = Appliance(
            owner_id=owner_id,
            name=name,
            company_name=company_name,
            model_number=model_number,
            purchase_date=purchase_date,
            image_data=product_image.data,
            image_content_type=product_image.content_type,
            image_file_name=product_image.file_name,
            image_file_size=product_image.file_size,
        )
        appliance.receipts = [_build_receipt(r, i) for i, r in enumerate(receipts)]
        self.db.add(appliance)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(appliance)
        return appliance

    def get_owned(self, appliance_id: str, owner_id: int) -> Appliance:
        appliance = (
            self.db.query(Appliance)
            .filter(Appliance.id == appliance_id, Appliance.owner_id == owner_id)
            .first()
        )
        if appliance is None:
            raise NotFoundError("Appliance not found or unauthorized")
        return appliance

    def find_by_owner_and_filter(self, owner_id: int, name_filter: str = "") -> List[Appliance]:
        """Owner's appliances whose name contains name_filter (case-insensitive)."""
        query = self.db.query(Appliance).filter(Appliance.owner_id == owner_id)
        if name_filter:
            query = query.filter(
                Appliance.name.ilike(f"%{_escape_like(name_filter)}%", escape="\\")
            )
        return query.order_by(Appliance.created_at, Appliance.id).all()

    def update_fields(self, appliance_id: str, owner_id: int, changes: Dict[str, Any]) -> Appliance:
        """Merge the given fields into the appliance; other fields stay as they are."""
        appliance = self.get_owned(appliance_id, owner_id)
        for field, value in changes.items():
            if field in UPDATABLE_FIELDS:
                setattr(appliance, field, value)
        self.db.commit()
        self.db.refresh(appliance)
        return appliance

    def append_receipt(self, appliance_id: str, owner_id: int, receipt: NewReceipt) -> ApplianceReceipt:
        appliance = self.get_owned(appliance_id, owner_id)
        position = max((r.position for r in appliance.receipts), default=-1) + 1
        row = _build_receipt(receipt, position)
        appliance.receipts.append(row)
        self.db.commit()
        self.db.refresh(appliance)
        return row

    def delete(self, appliance_id: str, owner_id: int) -> None:
        appliance = self.get_owned(appliance_id, owner_id)
        self.db.delete(appliance)
        self.db.commit()
        logger.info(f"Deleted appliance {appliance_id}")

    @staticmethod
    def find_receipt(appliance: Appliance, receipt_id: str) -> ApplianceReceipt:
        for receipt in appliance.receipts:
            if receipt.id == receipt_id:
                return receipt
        raise NotFoundError("Receipt not found")
