"""
Appliance and ApplianceReceipt database models.

Asset bytes are stored as base64 text of the codec output; file_size always
holds the length of the original upload.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Date, Text, ForeignKey, DateTime, Index
from sqlalchemy.orm import relationship

from appliance_vault.database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Appliance(Base):
    """An appliance owned by a user, with its product image inline."""

    __tablename__ = "appliances"
    __table_args__ = (
        Index("idx_appliance_owner", "owner_id"),
        Index("idx_appliance_owner_created", "owner_id", "created_at"),
    )

    id = Column(String(32), primary_key=True, default=_new_id)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    name = Column(String, nullable=False)
    company_name = Column(String, nullable=True)
    model_number = Column(String, nullable=False)
    purchase_date = Column(Date, nullable=False)

    # Product image asset
    image_data = Column(Text, nullable=False)
    image_content_type = Column(String, nullable=False)
    image_file_name = Column(String, nullable=False)
    image_file_size = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    # Relationships
    owner = relationship("User", back_populates="appliances")
    receipts = relationship(
        "ApplianceReceipt",
        back_populates="appliance",
        cascade="all, delete-orphan",
        order_by="ApplianceReceipt.position",
    )


class ApplianceReceipt(Base):
    """A receipt document attached to an appliance."""

    __tablename__ = "appliance_receipts"
    __table_args__ = (
        Index("idx_receipt_appliance_position", "appliance_id", "position"),
    )

    id = Column(String(32), primary_key=True, default=_new_id)
    appliance_id = Column(String(32), ForeignKey("appliances.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String, nullable=False)
    data = Column(Text, nullable=False)
    content_type = Column(String, nullable=False)
    file_name = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    appliance = relationship("Appliance", back_populates="receipts")
